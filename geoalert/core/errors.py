"""
Exception hierarchy for geofence alerting.

Provides:
    • InvalidGeometryError  - malformed point or shape reaching the index
    • IncidentNotFoundError - re-evaluation requested for an unknown incident
    • StorageTransientError - retryable backend failure (lock, timeout, ...)
    • StorageError          - non-retryable backend failure

"No match" and "duplicate suppressed" are normal outcomes, not exceptions.
"""

from typing import Any, Dict, Optional


class GeoAlertError(Exception):
    """모든 도메인 예외의 기반 클래스"""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class InvalidGeometryError(GeoAlertError, ValueError):
    """잘못된 좌표 또는 형상 데이터"""

    def __init__(self, message: str, **details: Any):
        super().__init__(message, error_code="INVALID_GEOMETRY", details=details)


class IncidentNotFoundError(GeoAlertError, LookupError):
    """존재하지 않는 사건"""

    def __init__(self, incident_id: str):
        super().__init__(
            f"Incident {incident_id} not found",
            error_code="NOT_FOUND",
            details={"resource": "Incident", "id": incident_id},
        )
        self.incident_id = incident_id


class StorageTransientError(GeoAlertError):
    """재시도 가능한 저장소 오류"""

    def __init__(self, message: str = "Transient storage failure", **details: Any):
        super().__init__(message, error_code="STORAGE_TRANSIENT", details=details)


class StorageError(GeoAlertError):
    """재시도 불가능한 저장소 오류"""

    def __init__(self, message: str = "Storage failure", **details: Any):
        super().__init__(message, error_code="STORAGE_ERROR", details=details)
