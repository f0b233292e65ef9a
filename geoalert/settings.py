# geoalert/settings.py
from __future__ import annotations
from pydantic import BaseModel, Field

class IndexConfig(BaseModel):
    cell_size_deg: float = 0.5                # 그리드 셀 크기 (도)
    max_cells_per_geofence: int = 4096        # 초과 시 oversized 목록으로
    max_workers: int = 4
    parallel_threshold: int = 64              # 후보 수가 이 이상이면 병렬 평가

class Reliability(BaseModel):
    alert_create_max_retries: int = 3
    backoff_initial_sec: float = 0.1
    backoff_max_sec: float = 2.0
    storage_timeout_sec: float = 5.0
    dispatch_concurrency: int = 8

class Matching(BaseModel):
    refresh_on_reevaluate: bool = True
    index_refresh_interval_sec: float = 60.0

class Storage(BaseModel):
    db_path: str = "/data/geoalert.db"

class Observability(BaseModel):
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "GeoAlert"
    build_version: str = "0.1.0"
    build_date: str = "2026-10-01"
    log_level: str = "INFO"

class Settings(BaseModel):
    index: IndexConfig = Field(default_factory=IndexConfig)
    reliability: Reliability = Field(default_factory=Reliability)
    matching: Matching = Field(default_factory=Matching)
    storage: Storage = Field(default_factory=Storage)
    observability: Observability = Field(default_factory=Observability)
