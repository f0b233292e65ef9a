"""
SQLite-based incident store.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

import aiosqlite
from geoalert.adapters.storage.sqlite_base import SQLiteStore, translate_error
from geoalert.core.models import Incident, IncidentCreate, Point
from geoalert.observability.logging_setup import get_logger

log = get_logger("geoalert.storage.incidents")

_COLUMNS = "id, lat, lon, severity, status, title, description, reporter_id, created_at"


class SQLiteIncidentStore(SQLiteStore):
    """SQLite 기반 사건 저장소"""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS incidents (
        id TEXT PRIMARY KEY,
        lat REAL NOT NULL,
        lon REAL NOT NULL,
        severity TEXT NOT NULL,
        status TEXT NOT NULL,
        title TEXT,
        description TEXT,
        reporter_id TEXT,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_incidents_created ON incidents(created_at);
    """

    async def create(self, data: IncidentCreate) -> Incident:
        """
        사건을 저장합니다.

        Args:
            data: 사건 생성 입력

        Returns:
            ID와 생성 시각이 부여된 사건
        """
        incident = Incident(id=uuid4().hex, **data.model_dump())
        try:
            async with self.connect() as db:
                await db.execute(
                    f"INSERT INTO incidents ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (incident.id, incident.location.lat, incident.location.lon,
                     incident.severity, incident.status, incident.title,
                     incident.description, incident.reporter_id,
                     incident.created_at.isoformat())
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise translate_error("create_incident", e) from e

        log.info("사건 저장", incident_id=incident.id, severity=incident.severity)
        return incident

    async def get(self, incident_id: str) -> Optional[Incident]:
        """
        사건을 조회합니다.

        Args:
            incident_id: 사건 ID

        Returns:
            사건 또는 None
        """
        try:
            async with self.connect() as db:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM incidents WHERE id = ?", (incident_id,)
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise translate_error("get_incident", e) from e

        if row is None:
            return None
        return Incident(
            id=row[0],
            location=Point(lat=row[1], lon=row[2]),
            severity=row[3],
            status=row[4],
            title=row[5],
            description=row[6],
            reporter_id=row[7],
            created_at=datetime.fromisoformat(row[8]),
        )
