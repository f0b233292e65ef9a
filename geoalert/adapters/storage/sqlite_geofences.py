"""
SQLite-based geofence store.

Shapes are stored as JSON produced by the pydantic models and are
validated again when read back.
"""

import json
from typing import List, Optional

import aiosqlite
from geoalert.adapters.storage.sqlite_base import SQLiteStore, translate_error
from geoalert.core.errors import InvalidGeometryError
from geoalert.core.models import Geofence, geofence_from_dict
from geoalert.observability.logging_setup import get_logger

log = get_logger("geoalert.storage.geofences")

_COLUMNS = "id, name, owner_id, subscribers, shape, active, version"


class SQLiteGeofenceStore(SQLiteStore):
    """SQLite 기반 지오펜스 저장소"""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS geofences (
        id TEXT PRIMARY KEY,
        name TEXT,
        owner_id TEXT,
        subscribers TEXT NOT NULL DEFAULT '[]',
        shape TEXT NOT NULL,
        active INTEGER NOT NULL DEFAULT 1,
        version INTEGER NOT NULL DEFAULT 1
    );
    CREATE INDEX IF NOT EXISTS idx_geofences_active ON geofences(active);
    """

    @staticmethod
    def _row_to_geofence(row) -> Geofence:
        try:
            subscribers = json.loads(row[3])
            shape = json.loads(row[4])
        except (TypeError, ValueError) as e:
            raise InvalidGeometryError("malformed geofence row",
                                       geofence_id=row[0], error=str(e)) from e
        return geofence_from_dict({
            "id": row[0],
            "name": row[1],
            "owner_id": row[2],
            "subscribers": subscribers,
            "shape": shape,
            "active": bool(row[5]),
            "version": row[6],
        })

    async def upsert(self, geofence: Geofence) -> None:
        """
        지오펜스를 추가하거나 교체합니다.

        Args:
            geofence: 저장할 지오펜스
        """
        try:
            async with self.connect() as db:
                await db.execute(
                    f"INSERT OR REPLACE INTO geofences ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (geofence.id, geofence.name, geofence.owner_id,
                     json.dumps(list(geofence.subscribers)),
                     geofence.shape.model_dump_json(),
                     int(geofence.active), geofence.version)
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise translate_error("upsert_geofence", e) from e
        log.info("지오펜스 저장", geofence_id=geofence.id, version=geofence.version)

    async def deactivate(self, geofence_id: str) -> bool:
        """지오펜스를 비활성화합니다. 존재했으면 True"""
        try:
            async with self.connect() as db:
                cursor = await db.execute(
                    "UPDATE geofences SET active = 0 WHERE id = ?", (geofence_id,)
                )
                await db.commit()
                return cursor.rowcount > 0
        except aiosqlite.Error as e:
            raise translate_error("deactivate_geofence", e) from e

    async def get(self, geofence_id: str) -> Optional[Geofence]:
        try:
            async with self.connect() as db:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM geofences WHERE id = ?", (geofence_id,)
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise translate_error("get_geofence", e) from e
        return self._row_to_geofence(row) if row else None

    async def list_active(self) -> List[Geofence]:
        """
        활성 지오펜스 목록을 조회합니다.

        Returns:
            활성 지오펜스 목록

        Raises:
            InvalidGeometryError: 저장된 형상이 잘못된 경우
        """
        try:
            async with self.connect() as db:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM geofences WHERE active = 1 ORDER BY id"
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise translate_error("list_active_geofences", e) from e
        return [self._row_to_geofence(row) for row in rows]
