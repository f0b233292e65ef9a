"""
Orchestrators for geofence alerting.

This module contains the service that coordinates
the flow between repositories, the index and the dispatcher.
"""
from .alert_service import GeofenceAlertService

__all__ = ["GeofenceAlertService"]
