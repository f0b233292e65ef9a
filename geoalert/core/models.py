"""
Core domain models for geofence alerting.

This module defines the core domain models using Pydantic v2
for type safety and validation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from geoalert.core.errors import InvalidGeometryError

# 심각도/상태 타입 정의
Severity = Literal["low", "medium", "high"]
IncidentStatus = Literal["reported", "inProgress", "resolved"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


class Point(BaseModel):
    """WGS84 좌표 (도 단위)"""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lon: float = Field(ge=-180, le=180, allow_inf_nan=False)

    @classmethod
    def from_lon_lat(cls, coordinates) -> "Point":
        """GeoJSON 순서 [경도, 위도]에서 생성합니다."""
        lon, lat = coordinates[0], coordinates[1]
        return cls(lat=lat, lon=lon)

    def as_xy(self) -> Tuple[float, float]:
        """(경도, 위도) 튜플"""
        return (self.lon, self.lat)


class Circle(BaseModel):
    """원형 지오펜스 형상"""
    model_config = ConfigDict(frozen=True)

    type: Literal["circle"] = "circle"
    center: Point
    radius_m: float = Field(gt=0, allow_inf_nan=False)


class Polygon(BaseModel):
    """다각형 지오펜스 형상 (암묵적으로 닫힘)"""
    model_config = ConfigDict(frozen=True)

    type: Literal["polygon"] = "polygon"
    vertices: Tuple[Point, ...]

    @field_validator("vertices")
    @classmethod
    def _drop_closing_vertex(cls, v: Tuple[Point, ...]) -> Tuple[Point, ...]:
        if len(v) > 1 and v[0] == v[-1]:
            v = v[:-1]
        if len(v) < 3:
            raise ValueError("polygon requires at least 3 distinct vertices")
        return v

    def ring(self) -> List[Tuple[float, float]]:
        """(경도, 위도) 꼭짓점 목록"""
        return [vertex.as_xy() for vertex in self.vertices]


Shape = Annotated[Union[Circle, Polygon], Field(discriminator="type")]


class Geofence(BaseModel):
    """사전 등록된 지리 영역"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: Optional[str] = None
    owner_id: Optional[str] = None
    subscribers: Tuple[str, ...] = ()
    shape: Shape
    active: bool = True
    version: int = Field(default=1, ge=1)


def geofence_from_dict(data: Dict[str, Any]) -> Geofence:
    """
    원시 딕셔너리를 Geofence로 변환합니다.

    Raises:
        InvalidGeometryError: 형상 또는 좌표가 잘못된 경우
    """
    try:
        return Geofence.model_validate(data)
    except ValidationError as e:
        raise InvalidGeometryError(
            "malformed geofence",
            geofence_id=data.get("id") if isinstance(data, dict) else None,
            errors=e.errors(include_url=False),
        ) from e


class IncidentCreate(BaseModel):
    """사건 생성 입력"""
    location: Point
    severity: Severity = "medium"
    status: IncidentStatus = "reported"
    title: Optional[str] = None
    description: Optional[str] = None
    reporter_id: Optional[str] = None


def incident_create_from_dict(data: Dict[str, Any]) -> IncidentCreate:
    """
    원시 딕셔너리를 IncidentCreate로 변환합니다.

    Raises:
        InvalidGeometryError: 위치가 없거나 잘못된 경우
        ValidationError: 위치 외의 필드가 잘못된 경우
    """
    try:
        return IncidentCreate.model_validate(data)
    except ValidationError as e:
        location_errors = [err for err in e.errors(include_url=False)
                           if err["loc"] and err["loc"][0] == "location"]
        if not location_errors:
            raise
        raise InvalidGeometryError("malformed incident location",
                                   errors=location_errors) from e


class Incident(IncidentCreate):
    """저장된 사건"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)


class Alert(BaseModel):
    """(사건, 지오펜스) 쌍마다 최대 한 번 생성되는 경보"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    incident_id: str
    geofence_id: str
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def dedup_key(self) -> Tuple[str, str]:
        return (self.incident_id, self.geofence_id)


class AlertCreation(BaseModel):
    """create_if_absent 결과"""
    created: bool
    alert: Alert


class AlertStatus(str, Enum):
    """지오펜스별 발송 결과 상태"""
    CREATED = "created"
    ALREADY_ALERTED = "already_alerted"
    FAILED = "failed"
    SKIPPED = "skipped"


class MatchResult(BaseModel):
    """지오펜스별 경보 처리 결과 (저장되지 않음)"""
    geofence_id: str
    matched: bool
    status: AlertStatus
    reason: Optional[str] = None
    alert_id: Optional[str] = None
    attempts: int = 0


class _AlertResults(BaseModel):
    alert_results: List[MatchResult] = Field(default_factory=list)

    @property
    def created_count(self) -> int:
        return sum(1 for r in self.alert_results if r.status == AlertStatus.CREATED)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.alert_results if not r.matched)

    @property
    def all_succeeded(self) -> bool:
        return all(r.matched for r in self.alert_results)


class IncidentAlertReport(_AlertResults):
    """사건 생성 + 지오펜스 감지 결과"""
    incident: Incident


class ReevaluationReport(_AlertResults):
    """기존 사건 재평가 결과"""
    incident_id: str
