"""Bridge client factory and initialization."""

from __future__ import annotations

from typing import Optional

from ..chain import OPTIMISM, get_chain_client
from ..config import SenseiConfig, load_config
from .across import AcrossBridgeClient
from .base import BridgeClient


def get_bridge(config: Optional[SenseiConfig] = None) -> BridgeClient:
    """Build the Across bridge funded from the Optimism wallet."""

    config = config or load_config()
    return AcrossBridgeClient(
        get_chain_client(OPTIMISM, config),
        api_url=config.across.api_url,
        integrator_id=config.across.integrator_id,
        fill_max_attempts=config.across.fill_max_attempts,
        fill_poll_interval=config.across.fill_poll_interval,
        timeout=config.across.timeout,
    )


__all__ = ["AcrossBridgeClient", "BridgeClient", "get_bridge"]
