"""HTTP client implementation of the status store."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..contracts import WorkflowStatus
from ..errors import StaleStatusError
from ..utils.retry import schedule_retry
from .models import StatusRecord

logger = logging.getLogger(__name__)

VERSION_HEADER = "X-Status-Version"


class HttpStatusStore:
    """Talk to a ``sensei serve`` status server.

    Reads never fail: an unreachable server reads as an all-zero status, the
    same way the status page treats it. Writes are retried on transport
    errors and raise once the retry budget is spent.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_write_attempts: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_write_attempts = max_write_attempts
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_record(self) -> StatusRecord:
        try:
            response = await self._client.get("/status")
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error reading status: {e}")
            return StatusRecord()
        return StatusRecord(
            status=WorkflowStatus.model_validate(response.json()),
            version=int(response.headers.get(VERSION_HEADER, 0)),
        )

    async def get_status(self) -> WorkflowStatus:
        return (await self.get_record()).status

    async def merge_status(
        self, partial: dict[str, Any], expected_version: int | None = None
    ) -> WorkflowStatus:
        normalized = WorkflowStatus.normalize_partial(partial)
        headers = {}
        if expected_version is not None:
            headers["If-Match"] = str(expected_version)

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._client.post(
                    "/update-status", json=normalized, headers=headers
                )
                break
            except httpx.TransportError as e:
                if attempt >= self.max_write_attempts:
                    logger.error(f"Failed to update status: {e}")
                    raise
                logger.warning(f"Status update attempt {attempt} failed: {e}")
                await schedule_retry(attempt)

        if response.status_code == 409:
            body = response.json()
            raise StaleStatusError(int(body["expected"]), int(body["actual"]))
        response.raise_for_status()
        status = WorkflowStatus.model_validate(response.json()["status"])
        logger.info(f"Status updated: {status.to_document()}")
        return status

    async def reset(self) -> None:
        response = await self._client.delete("/status")
        response.raise_for_status()
