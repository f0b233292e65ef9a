"""
Geofence alert service.

This module implements the two operations the surrounding application
calls: create an incident and alert the geofences containing it, and
re-create alerts for an existing incident. Both funnel through the same
dedup-safe dispatcher, so either can be repeated safely.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union

from geoalert.core.dispatcher import AlertDispatcher
from geoalert.core.errors import IncidentNotFoundError
from geoalert.core.geofence_index import GeofenceIndex
from geoalert.core.matcher import IncidentMatcher
from geoalert.core.models import (
    Incident, IncidentAlertReport, IncidentCreate, MatchResult, ReevaluationReport,
    incident_create_from_dict,
)
from geoalert.observability import metrics
from geoalert.observability.logging_setup import get_logger, with_context
from geoalert.ports.alerts import AlertRepositoryPort
from geoalert.ports.geofences import GeofenceRepositoryPort
from geoalert.ports.incidents import IncidentRepositoryPort

log = get_logger("geoalert.service")


class GeofenceAlertService:
    """사건 생성/재평가 트리거를 처리하는 서비스"""

    def __init__(self,
                 incidents: IncidentRepositoryPort,
                 geofences: GeofenceRepositoryPort,
                 alerts: AlertRepositoryPort,
                 index: GeofenceIndex,
                 *,
                 dispatcher: Optional[AlertDispatcher] = None,
                 refresh_on_reevaluate: bool = True):
        """
        초기화합니다.

        Args:
            incidents: 사건 저장소 포트
            geofences: 지오펜스 저장소 포트
            alerts: 경보 저장소 포트
            index: 지오펜스 인덱스
            dispatcher: 경보 발송기 (없으면 기본 설정으로 생성)
            refresh_on_reevaluate: 재평가 전에 인덱스를 저장소에서 다시 읽을지 여부
        """
        self.incidents = incidents
        self.geofences = geofences
        self.alerts = alerts
        self.index = index
        self.matcher = IncidentMatcher(index)
        self.dispatcher = dispatcher or AlertDispatcher(alerts)
        self.refresh_on_reevaluate = refresh_on_reevaluate

    async def refresh_geofences(self) -> int:
        """
        저장소의 활성 지오펜스로 인덱스를 갱신합니다.

        Returns:
            인덱싱된 지오펜스 수
        """
        return await self.index.refresh(self.geofences)

    async def create_incident_with_geofence_detection(
            self,
            incident_data: Union[IncidentCreate, Dict[str, Any]],
            *,
            cancel_event: Optional[asyncio.Event] = None) -> IncidentAlertReport:
        """
        사건을 저장한 뒤 지오펜스를 감지하고 경보를 생성합니다.

        Args:
            incident_data: 사건 생성 입력
            cancel_event: 협조적 취소 이벤트

        Returns:
            저장된 사건과 지오펜스별 경보 결과

        Raises:
            InvalidGeometryError: 사건 위치가 잘못된 경우 (저장 전 거부)
        """
        if not isinstance(incident_data, IncidentCreate):
            incident_data = incident_create_from_dict(incident_data)

        if not self.index.loaded:
            await self.refresh_geofences()

        incident = await self.incidents.create(incident_data)
        results = await self._match_and_dispatch(incident, "create", cancel_event)
        return IncidentAlertReport(incident=incident, alert_results=results)

    async def create_alerts_for_existing_incident(
            self,
            incident_id: str,
            *,
            cancel_event: Optional[asyncio.Event] = None) -> ReevaluationReport:
        """
        기존 사건을 현재 지오펜스 집합으로 다시 매칭하고 경보를 생성합니다.

        이미 경보가 있는 지오펜스는 already_alerted로 보고되며,
        몇 번을 호출해도 중복 경보는 생기지 않습니다.

        Args:
            incident_id: 사건 ID
            cancel_event: 협조적 취소 이벤트

        Returns:
            지오펜스별 경보 결과

        Raises:
            IncidentNotFoundError: 사건이 없는 경우
        """
        incident = await self.incidents.get(incident_id)
        if incident is None:
            raise IncidentNotFoundError(incident_id)

        if self.refresh_on_reevaluate or not self.index.loaded:
            await self.refresh_geofences()

        results = await self._match_and_dispatch(incident, "reevaluate", cancel_event)
        return ReevaluationReport(incident_id=incident.id, alert_results=results)

    async def _match_and_dispatch(self,
                                  incident: Incident,
                                  trigger: str,
                                  cancel_event: Optional[asyncio.Event]) -> List[MatchResult]:
        with with_context(incident_id=incident.id, trigger=trigger):
            # 동기 매칭은 워커 스레드에서 실행
            geofence_ids = await asyncio.to_thread(self.matcher.match, incident)
            metrics.incidents_matched.labels(trigger=trigger).inc()

            if not geofence_ids:
                log.info("일치하는 지오펜스 없음", incident_id=incident.id, trigger=trigger)
                return []

            log.info("지오펜스 감지",
                     incident_id=incident.id,
                     trigger=trigger,
                     geofences=len(geofence_ids))
            return await self.dispatcher.dispatch(incident.id, geofence_ids,
                                                  cancel_event=cancel_event)
