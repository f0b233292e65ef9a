"""
Alert repository port interface.

This module defines the atomic insert-if-absent primitive
that alert deduplication relies on.
"""

from typing import List, Protocol
from geoalert.core.models import Alert, AlertCreation

class AlertRepositoryPort(Protocol):
    """경보 저장소 포트 인터페이스"""
    
    async def create_if_absent(self, incident_id: str, geofence_id: str) -> AlertCreation:
        """
        (incident_id, geofence_id) 키의 경보가 없으면 원자적으로 생성합니다.
        
        Args:
            incident_id: 사건 ID
            geofence_id: 지오펜스 ID
            
        Returns:
            created가 False이면 기존 경보를 담은 결과
            
        Raises:
            StorageTransientError: 재시도 가능한 오류
            StorageError: 재시도 불가능한 오류
        """
        ...
    
    async def list_for_incident(self, incident_id: str) -> List[Alert]:
        """
        사건의 경보 목록을 조회합니다.
        
        Args:
            incident_id: 사건 ID
            
        Returns:
            생성 순서의 경보 목록
        """
        ...
