"""SQLite implementation of the status store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path
from typing import Any

from ..errors import StaleStatusError
from .models import UPDATED_AT_KEY, VERSION_KEY, StatusRecord
from .repository import BaseStatusStore


class SQLiteStatusStore(BaseStatusStore):
    """Persist workflow status in a single-row SQLite table."""

    def __init__(self, db_path: str | Path):
        super().__init__()
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_status (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                document TEXT NOT NULL,
                version INTEGER NOT NULL,
                updated_at TEXT
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _load(self) -> StatusRecord:
        row = self._fetchone(
            "SELECT document, version, updated_at FROM workflow_status WHERE id = 1"
        )
        if not row:
            return StatusRecord()
        document = json.loads(row["document"])
        document[VERSION_KEY] = row["version"]
        if row["updated_at"]:
            document[UPDATED_AT_KEY] = row["updated_at"]
        return StatusRecord.from_document(document)

    def _store(self, record: StatusRecord, previous_version: int) -> None:
        document = json.dumps(record.status.to_document())
        updated_at = record.updated_at.isoformat() if record.updated_at else None
        cur = self._conn.cursor()
        if previous_version == 0:
            cur.execute(
                "INSERT OR IGNORE INTO workflow_status (id, document, version, updated_at) VALUES (1, ?, ?, ?)",
                (document, record.version, updated_at),
            )
        else:
            cur.execute(
                "UPDATE workflow_status SET document = ?, version = ?, updated_at = ? WHERE id = 1 AND version = ?",
                (document, record.version, updated_at, previous_version),
            )
        if cur.rowcount == 0:
            self._conn.rollback()
            raise StaleStatusError(previous_version, self._load().version)
        self._conn.commit()

    # ------------------------------------------------------------------
    # Store API
    async def _read_record(self) -> StatusRecord:
        return await asyncio.to_thread(self._load)

    async def _write_record(self, record: StatusRecord, previous_version: int) -> None:
        await asyncio.to_thread(self._store, record, previous_version)
