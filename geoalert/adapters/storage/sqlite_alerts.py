"""
SQLite-based alert store.

The UNIQUE(incident_id, geofence_id) constraint makes create_if_absent
atomic across connections and processes: a conflicting insert raises
IntegrityError and the existing alert is returned instead.
"""

from datetime import datetime
from typing import List, Optional

import aiosqlite
from geoalert.adapters.storage.sqlite_base import SQLiteStore, translate_error
from geoalert.core.models import Alert, AlertCreation
from geoalert.observability.logging_setup import get_logger

log = get_logger("geoalert.storage.alerts")


class SQLiteAlertStore(SQLiteStore):
    """SQLite 기반 경보 저장소"""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS alerts (
        id TEXT PRIMARY KEY,
        incident_id TEXT NOT NULL,
        geofence_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (incident_id, geofence_id)
    );
    CREATE INDEX IF NOT EXISTS idx_alerts_incident ON alerts(incident_id);
    """

    @staticmethod
    def _row_to_alert(row) -> Alert:
        return Alert(
            id=row[0],
            incident_id=row[1],
            geofence_id=row[2],
            created_at=datetime.fromisoformat(row[3]),
        )

    async def create_if_absent(self, incident_id: str, geofence_id: str) -> AlertCreation:
        """
        키가 없으면 경보를 추가하고 created=True, 있으면 기존 경보와 created=False

        Args:
            incident_id: 사건 ID
            geofence_id: 지오펜스 ID

        Returns:
            생성 결과

        Raises:
            StorageTransientError: 잠금 등 재시도 가능한 오류
            StorageError: 그 밖의 저장소 오류
        """
        alert = Alert(incident_id=incident_id, geofence_id=geofence_id)
        try:
            async with self.connect() as db:
                try:
                    await db.execute(
                        "INSERT INTO alerts (id, incident_id, geofence_id, created_at) "
                        "VALUES (?, ?, ?, ?)",
                        (alert.id, incident_id, geofence_id, alert.created_at.isoformat())
                    )
                    await db.commit()
                    return AlertCreation(created=True, alert=alert)
                except aiosqlite.IntegrityError:
                    # 키가 이미 존재함
                    existing = await self._fetch(db, incident_id, geofence_id)
                    if existing is None:
                        raise
                    return AlertCreation(created=False, alert=existing)
        except aiosqlite.Error as e:
            raise translate_error("create_if_absent", e) from e

    async def _fetch(self, db, incident_id: str, geofence_id: str) -> Optional[Alert]:
        cursor = await db.execute(
            "SELECT id, incident_id, geofence_id, created_at FROM alerts "
            "WHERE incident_id = ? AND geofence_id = ?",
            (incident_id, geofence_id)
        )
        row = await cursor.fetchone()
        return self._row_to_alert(row) if row else None

    async def get(self, incident_id: str, geofence_id: str) -> Optional[Alert]:
        """중복 제거 키로 경보를 조회합니다."""
        try:
            async with self.connect() as db:
                return await self._fetch(db, incident_id, geofence_id)
        except aiosqlite.Error as e:
            raise translate_error("get", e) from e

    async def list_for_incident(self, incident_id: str) -> List[Alert]:
        """
        사건의 경보 목록을 조회합니다.

        Args:
            incident_id: 사건 ID

        Returns:
            생성 순서의 경보 목록
        """
        try:
            async with self.connect() as db:
                cursor = await db.execute(
                    "SELECT id, incident_id, geofence_id, created_at FROM alerts "
                    "WHERE incident_id = ? ORDER BY created_at, rowid",
                    (incident_id,)
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise translate_error("list_for_incident", e) from e
        return [self._row_to_alert(row) for row in rows]

    async def get_count(self) -> int:
        """
        현재 저장된 경보 수를 반환합니다.

        Returns:
            경보 수
        """
        try:
            async with self.connect() as db:
                cursor = await db.execute("SELECT COUNT(*) FROM alerts")
                result = await cursor.fetchone()
                return result[0] if result else 0
        except aiosqlite.Error as e:
            raise translate_error("get_count", e) from e
