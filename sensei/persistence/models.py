"""Data models for persisted workflow status."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..contracts import WorkflowStatus

VERSION_KEY = "_version"
UPDATED_AT_KEY = "_updatedAt"


class StatusRecord(BaseModel):
    """Versioned envelope around the stored status."""

    status: WorkflowStatus = Field(default_factory=WorkflowStatus)
    version: int = 0
    updated_at: Optional[datetime] = None

    def bump(self, status: WorkflowStatus) -> "StatusRecord":
        """Return the successor record holding ``status``."""
        return StatusRecord(
            status=status,
            version=self.version + 1,
            updated_at=datetime.now(timezone.utc),
        )

    def to_document(self) -> dict[str, Any]:
        document = self.status.to_document()
        document[VERSION_KEY] = self.version
        if self.updated_at is not None:
            document[UPDATED_AT_KEY] = self.updated_at.isoformat()
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "StatusRecord":
        updated_at = document.get(UPDATED_AT_KEY)
        return cls(
            status=WorkflowStatus.model_validate(document),
            version=int(document.get(VERSION_KEY, 0)),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )
