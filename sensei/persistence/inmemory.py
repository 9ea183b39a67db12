"""In-memory implementation of the status store."""

from __future__ import annotations

from .models import StatusRecord
from .repository import BaseStatusStore


class InMemoryStatusStore(BaseStatusStore):
    """Keep workflow status in local memory.

    Useful for tests or when the pipeline and its readers share a process.
    Data is not persisted across process restarts.
    """

    def __init__(self) -> None:
        super().__init__()
        self._record = StatusRecord()

    async def _read_record(self) -> StatusRecord:
        return self._record.model_copy(deep=True)

    async def _write_record(self, record: StatusRecord, previous_version: int) -> None:
        self._record = record
