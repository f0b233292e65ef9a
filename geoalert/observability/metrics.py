"""
Metrics definitions for geofence alerting.

This module defines Prometheus metrics for monitoring
geofence matching and alert dispatch.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
incidents_matched = Counter(
    "geoalert_incidents_matched_total",
    "Number of incidents matched against the geofence index",
    ["trigger"]
)

alerts_created = Counter(
    "geoalert_alerts_created_total",
    "Number of alerts created"
)

alerts_duplicate = Counter(
    "geoalert_alerts_duplicate_total",
    "Number of alert creations suppressed by the dedup key"
)

alert_failures = Counter(
    "geoalert_alert_failures_total",
    "Number of per-geofence alert failures",
    ["reason"]
)

alert_create_retries = Counter(
    "geoalert_alert_create_retries_total",
    "Alert creation retries after transient storage errors"
)

# 히스토그램 메트릭
match_seconds = Histogram(
    "geoalert_match_duration_seconds",
    "Time spent querying the geofence index",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5]
)

dispatch_seconds = Histogram(
    "geoalert_dispatch_duration_seconds",
    "Time spent dispatching alerts for one incident",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# 게이지 메트릭
indexed_geofences = Gauge(
    "geoalert_indexed_geofences",
    "Number of geofences in the published index snapshot"
)

index_version = Gauge(
    "geoalert_index_version",
    "Version of the published index snapshot"
)
