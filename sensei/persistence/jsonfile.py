"""JSON document implementation of the status store."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from ..errors import StaleStatusError
from .models import StatusRecord
from .repository import BaseStatusStore

logger = logging.getLogger(__name__)


class JsonFileStatusStore(BaseStatusStore):
    """Persist workflow status as a flat ``status.json`` document.

    The file stays readable by anything that understands the plain status
    keys; the version travels in an extra ``_version`` key.
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Helper methods
    def _load(self, lenient: bool) -> StatusRecord:
        if not self.path.exists():
            return StatusRecord()
        try:
            document = json.loads(self.path.read_text(encoding="utf8") or "{}")
        except json.JSONDecodeError as e:
            if not lenient:
                raise
            logger.warning(f"Discarding unreadable status file {self.path}: {e}")
            return StatusRecord()
        return StatusRecord.from_document(document)

    def _dump(self, record: StatusRecord, previous_version: int) -> None:
        on_disk = self._load(lenient=True)
        if on_disk.version != previous_version:
            raise StaleStatusError(previous_version, on_disk.version)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf8") as f:
                json.dump(record.to_document(), f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # ------------------------------------------------------------------
    # Store API
    async def _read_record(self) -> StatusRecord:
        return await asyncio.to_thread(self._load, False)

    async def _read_for_update(self) -> StatusRecord:
        return await asyncio.to_thread(self._load, True)

    async def _write_record(self, record: StatusRecord, previous_version: int) -> None:
        await asyncio.to_thread(self._dump, record, previous_version)
