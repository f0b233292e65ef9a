"""
Storage adapters for geofence alerting.

This module contains the aiosqlite implementations of the
geofence, incident and alert repository ports.
"""

from .sqlite_alerts import SQLiteAlertStore
from .sqlite_geofences import SQLiteGeofenceStore
from .sqlite_incidents import SQLiteIncidentStore

__all__ = ["SQLiteAlertStore", "SQLiteGeofenceStore", "SQLiteIncidentStore"]
