"""
Adapters for geofence alerting.

This module contains the concrete implementations of port interfaces
that handle persistence and other infrastructure concerns.
"""

from .storage import SQLiteAlertStore, SQLiteGeofenceStore, SQLiteIncidentStore

__all__ = ["SQLiteAlertStore", "SQLiteGeofenceStore", "SQLiteIncidentStore"]
