"""
Incident repository port interface.

This module defines the protocol for incident persistence.
"""

from typing import Optional, Protocol
from geoalert.core.models import Incident, IncidentCreate

class IncidentRepositoryPort(Protocol):
    """사건 저장소 포트 인터페이스"""
    
    async def create(self, data: IncidentCreate) -> Incident:
        """
        사건을 저장합니다.
        
        Args:
            data: 사건 생성 입력
            
        Returns:
            ID와 생성 시각이 부여된 사건
        """
        ...
    
    async def get(self, incident_id: str) -> Optional[Incident]:
        """
        사건을 조회합니다.
        
        Args:
            incident_id: 사건 ID
            
        Returns:
            사건 또는 None
        """
        ...
