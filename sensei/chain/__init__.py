"""On-chain access for the origin and destination networks."""

from __future__ import annotations

from typing import Optional

from ..config import SenseiConfig, load_config
from .client import ChainClient
from .registry import BASE, OPTIMISM, get_contract_address, rpc_url


def get_chain_client(
    chain_id: int, config: Optional[SenseiConfig] = None
) -> ChainClient:
    """Build a wallet-backed client for ``chain_id`` from configuration."""

    config = config or load_config()
    return ChainClient(
        rpc_url(chain_id, config.chains.infura_api_key, config.chains.rpc_urls),
        private_key=config.chains.private_key or "",
        chain_id=chain_id,
        receipt_timeout=config.across.receipt_timeout,
    )


__all__ = [
    "BASE",
    "OPTIMISM",
    "ChainClient",
    "get_chain_client",
    "get_contract_address",
]
