"""
Incident matching against the geofence index.

Matching is a pure query: it never writes and can be repeated
for the same incident any number of times.
"""

import time
from typing import List

from geoalert.core.geofence_index import GeofenceIndex
from geoalert.core.models import Incident
from geoalert.observability import metrics
from geoalert.observability.logging_setup import get_logger

log = get_logger("geoalert.matcher")


class IncidentMatcher:
    """사건 위치를 포함하는 지오펜스를 찾습니다"""

    def __init__(self, index: GeofenceIndex):
        self.index = index

    def match(self, incident: Incident) -> List[str]:
        """
        사건 위치를 포함하는 지오펜스 ID 목록을 반환합니다.

        일치하는 지오펜스가 없으면 빈 목록을 반환합니다 (오류 아님).

        Args:
            incident: 매칭할 사건

        Returns:
            정렬된 지오펜스 ID 목록

        Raises:
            InvalidGeometryError: 사건 위치가 잘못된 경우
        """
        start = time.perf_counter()
        geofence_ids = sorted(self.index.query(incident.location))
        metrics.match_seconds.observe(time.perf_counter() - start)

        log.debug("사건 매칭 완료",
                  incident_id=incident.id,
                  lat=incident.location.lat,
                  lon=incident.location.lon,
                  matches=len(geofence_ids),
                  index_version=self.index.version)
        return geofence_ids
