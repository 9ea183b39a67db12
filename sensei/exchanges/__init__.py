"""Exchange client factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import SenseiConfig, load_config
from .base import ExchangeClient
from .kraken import KrakenClient


def get_exchange(
    backend: Optional[str] = None, config: Optional[SenseiConfig] = None
) -> ExchangeClient:
    """Factory function to get the configured exchange client."""

    config = config or load_config()
    backend = (backend or os.getenv("SENSEI_EXCHANGE") or "kraken").lower()

    if backend == "kraken":
        return KrakenClient(
            api_key=config.kraken.api_key,
            api_secret=config.kraken.api_secret,
            api_url=config.kraken.api_url,
            timeout=config.kraken.timeout,
        )
    else:
        raise ValueError(f"Unsupported exchange backend: {backend}")


__all__ = ["ExchangeClient", "KrakenClient", "get_exchange"]
