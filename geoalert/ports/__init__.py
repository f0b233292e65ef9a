"""
Port interfaces for geofence alerting.

This module defines the port interfaces (Protocols) that define
the contracts between the core domain and external repositories.
"""

from .geofences import GeofenceRepositoryPort
from .incidents import IncidentRepositoryPort
from .alerts import AlertRepositoryPort

__all__ = ["GeofenceRepositoryPort", "IncidentRepositoryPort", "AlertRepositoryPort"]
