"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import asyncio
import os
import tempfile
from typing import Dict, List, Tuple

import pytest

from geoalert.core.dispatcher import AlertDispatcher
from geoalert.core.models import (
    Alert, AlertCreation, Circle, Geofence, Incident, IncidentCreate, Point, Polygon,
)
from geoalert.settings import Settings


class FakeAlertStore:
    """장애 주입이 가능한 메모리 경보 저장소"""

    def __init__(self):
        self.alerts: Dict[Tuple[str, str], Alert] = {}
        self.calls: List[Tuple[str, str]] = []
        self.failures: Dict[str, List[BaseException]] = {}
        self.delays: Dict[str, float] = {}

    async def create_if_absent(self, incident_id: str, geofence_id: str) -> AlertCreation:
        self.calls.append((incident_id, geofence_id))
        delay = self.delays.get(geofence_id)
        if delay:
            await asyncio.sleep(delay)
        plan = self.failures.get(geofence_id)
        if plan:
            raise plan.pop(0)

        key = (incident_id, geofence_id)
        if key in self.alerts:
            return AlertCreation(created=False, alert=self.alerts[key])
        alert = Alert(incident_id=incident_id, geofence_id=geofence_id)
        self.alerts[key] = alert
        return AlertCreation(created=True, alert=alert)

    async def list_for_incident(self, incident_id: str) -> List[Alert]:
        return [a for (iid, _), a in self.alerts.items() if iid == incident_id]


class FakeIncidentStore:
    """메모리 사건 저장소"""

    def __init__(self):
        self.incidents: Dict[str, Incident] = {}

    async def create(self, data: IncidentCreate) -> Incident:
        incident = Incident(id=f"inc-{len(self.incidents) + 1}", **data.model_dump())
        self.incidents[incident.id] = incident
        return incident

    async def get(self, incident_id: str):
        return self.incidents.get(incident_id)


class FakeGeofenceStore:
    """메모리 지오펜스 저장소"""

    def __init__(self, geofences=()):
        self.geofences: Dict[str, Geofence] = {g.id: g for g in geofences}
        self.list_calls = 0

    def add(self, geofence: Geofence) -> None:
        self.geofences[geofence.id] = geofence

    async def list_active(self) -> List[Geofence]:
        self.list_calls += 1
        return [g for g in self.geofences.values() if g.active]


def circle(geofence_id: str, lat: float, lon: float, radius_m: float, **kwargs) -> Geofence:
    """원형 지오펜스 생성 헬퍼"""
    return Geofence(id=geofence_id,
                    shape=Circle(center=Point(lat=lat, lon=lon), radius_m=radius_m),
                    **kwargs)


def polygon(geofence_id: str, lon_lat_vertices, **kwargs) -> Geofence:
    """(경도, 위도) 꼭짓점으로 다각형 지오펜스 생성 헬퍼"""
    vertices = tuple(Point(lat=lat, lon=lon) for lon, lat in lon_lat_vertices)
    return Geofence(id=geofence_id, shape=Polygon(vertices=vertices), **kwargs)


@pytest.fixture
def make_circle():
    return circle


@pytest.fixture
def make_polygon():
    return polygon


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    settings.observability.http_port = 8080
    return settings


@pytest.fixture
def fake_alert_store():
    return FakeAlertStore()


@pytest.fixture
def fake_incident_store():
    return FakeIncidentStore()


@pytest.fixture
def fake_geofence_store():
    return FakeGeofenceStore()


@pytest.fixture
def fast_dispatcher(fake_alert_store):
    """백오프 없이 재시도하는 발송기"""
    return AlertDispatcher(
        fake_alert_store,
        max_retries=2,
        backoff_initial_sec=0.0,
        backoff_max_sec=0.0,
        timeout_sec=0.5,
        concurrency=4,
        jitter=False,
    )


@pytest.fixture
def square_polygon():
    """테스트용 정사각형 폴리곤 (경도, 위도)"""
    return [
        (126.0, 37.0),  # 좌하
        (127.0, 37.0),  # 우하
        (127.0, 38.0),  # 우상
        (126.0, 38.0)   # 좌상
    ]


@pytest.fixture
def u_shaped_polygon():
    """오목 꼭짓점 (1,1), (2,1)을 가진 U자 폴리곤 (경도, 위도)"""
    return [
        (0.0, 0.0), (3.0, 0.0), (3.0, 3.0), (2.0, 3.0),
        (2.0, 1.0), (1.0, 1.0), (1.0, 3.0), (0.0, 3.0),
    ]


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "integration: 통합 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 비동기 테스트에 asyncio 마커 추가
        if asyncio.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)

        # 통합 테스트 마커 추가
        if "integration" in item.name or "scenario" in item.name:
            item.add_marker(pytest.mark.integration)
