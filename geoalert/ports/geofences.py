"""
Geofence repository port interface.

This module defines the protocol for reading the active geofence set.
"""

from typing import Protocol, Sequence
from geoalert.core.models import Geofence

class GeofenceRepositoryPort(Protocol):
    """지오펜스 저장소 포트 인터페이스"""
    
    async def list_active(self) -> Sequence[Geofence]:
        """
        활성 지오펜스 목록을 조회합니다.
        
        Returns:
            활성 지오펜스 목록
        """
        ...
