"""
Geofence incident alerting.

Determines which registered geofences contain an incident's location
and issues exactly one alert per (incident, geofence) pair.
"""

__version__ = "0.1.0"
