"""Status store abstraction for workflow progress persistence."""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, Protocol

from ..contracts import WorkflowStatus
from ..errors import StaleStatusError
from .models import StatusRecord

logger = logging.getLogger(__name__)


class StatusStore(Protocol):
    """Protocol for status persistence backends."""

    async def get_status(self) -> WorkflowStatus:
        """Return the full current status record."""

    async def get_record(self) -> StatusRecord:
        """Return the status together with its version."""

    async def merge_status(
        self, partial: dict[str, Any], expected_version: int | None = None
    ) -> WorkflowStatus:
        """Overlay ``partial`` onto the stored status and return the result."""

    async def reset(self) -> None:
        """Drop the stored status so the next read is all-zero."""


class BaseStatusStore(abc.ABC):
    """Merge-write semantics shared by local backends.

    Subclasses only read and write whole records. Merges are serialised by
    an in-process lock; cross-process safety comes from ``expected_version``.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @abc.abstractmethod
    async def _read_record(self) -> StatusRecord:
        raise NotImplementedError

    @abc.abstractmethod
    async def _write_record(self, record: StatusRecord, previous_version: int) -> None:
        raise NotImplementedError

    async def _read_for_update(self) -> StatusRecord:
        return await self._read_record()

    # ------------------------------------------------------------------
    async def get_status(self) -> WorkflowStatus:
        return (await self._read_record()).status

    async def get_record(self) -> StatusRecord:
        return await self._read_record()

    async def merge_status(
        self, partial: dict[str, Any], expected_version: int | None = None
    ) -> WorkflowStatus:
        normalized = WorkflowStatus.normalize_partial(partial)
        async with self._lock:
            current = await self._read_for_update()
            if expected_version is not None and expected_version != current.version:
                raise StaleStatusError(expected_version, current.version)
            if not normalized:
                return current.status
            updated = current.bump(current.status.merged(normalized))
            await self._write_record(updated, previous_version=current.version)
        logger.debug(f"Status v{updated.version}: {updated.status.to_document()}")
        return updated.status

    async def reset(self) -> None:
        async with self._lock:
            current = await self._read_for_update()
            await self._write_record(
                current.bump(WorkflowStatus()), previous_version=current.version
            )
