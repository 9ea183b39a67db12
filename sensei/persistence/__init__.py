"""Persistence layer for sensei workflow status."""

from __future__ import annotations

import os
from typing import Optional

from ..config import SenseiConfig, load_config
from .http import HttpStatusStore
from .inmemory import InMemoryStatusStore
from .jsonfile import JsonFileStatusStore
from .models import StatusRecord
from .repository import BaseStatusStore, StatusStore
from .sqlite import SQLiteStatusStore

_store_instance: StatusStore | None = None


def get_store(
    url: Optional[str] = None, config: Optional[SenseiConfig] = None
) -> StatusStore:
    """Factory function to obtain the status store.

    The backend is selected from ``url`` which can be provided explicitly,
    via environment variable ``SENSEI_STATUS_URL``, or from loaded
    configuration. Supported schemes are ``memory://``, ``file://``,
    ``sqlite://`` and ``http(s)://``; a bare ``*.json`` path is a file store.
    """

    global _store_instance
    if _store_instance is not None and url is None and config is None:
        return _store_instance

    config = config or load_config()
    url = url or os.getenv("SENSEI_STATUS_URL") or config.status.url

    if url.startswith("memory://"):
        _store_instance = InMemoryStatusStore()
    elif url.startswith("file://"):
        _store_instance = JsonFileStatusStore(url.replace("file://", "", 1))
    elif url.endswith(".json") and "://" not in url:
        _store_instance = JsonFileStatusStore(url)
    elif url.startswith("sqlite://"):
        _store_instance = SQLiteStatusStore(url.replace("sqlite://", "", 1))
    elif url.startswith("http://") or url.startswith("https://"):
        _store_instance = HttpStatusStore(url, timeout=config.status.timeout)
    else:
        raise ValueError(f"Unsupported status store: {url}")

    return _store_instance


__all__ = [
    "StatusRecord",
    "StatusStore",
    "BaseStatusStore",
    "InMemoryStatusStore",
    "JsonFileStatusStore",
    "SQLiteStatusStore",
    "HttpStatusStore",
    "get_store",
]
