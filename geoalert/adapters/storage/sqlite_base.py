"""
Shared SQLite plumbing for the storage adapters.

Each call opens its own aiosqlite connection. Lock contention is
reported as a transient error so callers can retry it.
"""

import aiosqlite
from geoalert.core.errors import StorageError, StorageTransientError
from geoalert.observability.logging_setup import get_logger

log = get_logger("geoalert.storage")

_TRANSIENT_MARKERS = ("locked", "busy", "disk i/o")


def translate_error(operation: str, error: Exception) -> Exception:
    """
    sqlite 예외를 도메인 저장소 예외로 변환합니다.

    Args:
        operation: 실패한 작업 이름
        error: 원본 예외

    Returns:
        StorageTransientError 또는 StorageError
    """
    message = str(error)
    if isinstance(error, aiosqlite.OperationalError) and any(
            marker in message.lower() for marker in _TRANSIENT_MARKERS):
        return StorageTransientError(f"{operation}: {message}", operation=operation)
    return StorageError(f"{operation}: {message}", operation=operation)


class SQLiteStore:
    """스키마 초기화와 연결 설정을 공유하는 SQLite 저장소 기반 클래스"""

    SCHEMA = ""

    def __init__(self, path: str, busy_timeout_sec: float = 5.0):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
            busy_timeout_sec: 잠금 대기 시간 (초)
        """
        self.path = path
        self.busy_timeout = busy_timeout_sec

    def connect(self):
        return aiosqlite.connect(self.path, timeout=self.busy_timeout)

    async def init(self) -> None:
        """데이터베이스 스키마를 초기화합니다."""
        async with self.connect() as db:
            await db.executescript(self.SCHEMA)
            await db.commit()
        log.info("스키마 초기화 완료", store=type(self).__name__, path=self.path)
