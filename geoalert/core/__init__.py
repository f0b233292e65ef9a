"""
Core domain models and pure logic for geofence alerting.

This module contains the domain models, the geofence index, incident
matching and alert dispatch, independent of any storage technology.
"""

from .models import (
    Alert, AlertCreation, AlertStatus, Circle, Geofence, Incident, IncidentCreate,
    IncidentAlertReport, MatchResult, Point, Polygon, ReevaluationReport, Severity,
)
from .errors import (
    GeoAlertError, IncidentNotFoundError, InvalidGeometryError, StorageError, StorageTransientError,
)
from .geofence_index import GeofenceIndex
from .matcher import IncidentMatcher
from .dispatcher import AlertDispatcher

__all__ = [
    "Alert", "AlertCreation", "AlertStatus", "Circle", "Geofence", "Incident", "IncidentCreate",
    "IncidentAlertReport", "MatchResult", "Point", "Polygon", "ReevaluationReport", "Severity",
    "GeoAlertError", "IncidentNotFoundError", "InvalidGeometryError", "StorageError",
    "StorageTransientError", "GeofenceIndex", "IncidentMatcher", "AlertDispatcher",
]
