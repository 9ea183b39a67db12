from __future__ import annotations

import os
from typing import Dict, List, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

from . import constants
from .errors import ConfigurationError


class StatusConfig(BaseModel):
    """Where workflow status is stored and how it is served."""

    url: str = constants.DEFAULT_STATUS_URL
    timeout: float = 10.0
    host: str = "127.0.0.1"
    port: int = constants.STATUS_SERVER_PORT
    cors_origins: List[str] = Field(
        default_factory=lambda: list(constants.STATUS_SERVER_ORIGINS)
    )


class PipelineSettings(BaseModel):
    """Assets, fees and polling policy of the transfer pipeline."""

    fiat_asset: str = constants.FIAT_ASSET
    stablecoin_asset: str = constants.STABLECOIN_ASSET
    swap_pair: str = constants.SWAP_PAIR
    withdrawal_key: str = constants.WITHDRAWAL_KEY
    reserve_factor: float = constants.RESERVE_FACTOR
    withdrawal_fee: float = constants.EXCHANGE_WITHDRAWAL_FEE
    deposit_poll_interval: float = constants.DEFAULT_DEPOSIT_POLL_INTERVAL
    balance_poll_interval: float = constants.DEFAULT_BALANCE_POLL_INTERVAL
    # None keeps waiting for the exchange credit forever
    balance_max_attempts: Optional[int] = None
    order_max_attempts: int = constants.DEFAULT_ORDER_MAX_ATTEMPTS
    order_poll_interval: float = constants.DEFAULT_ORDER_POLL_INTERVAL
    withdrawal_max_attempts: int = constants.DEFAULT_WITHDRAWAL_MAX_ATTEMPTS
    withdrawal_poll_interval: float = constants.DEFAULT_WITHDRAWAL_POLL_INTERVAL


class KrakenConfig(BaseModel):
    """Credentials and endpoint for the exchange."""

    api_url: str = constants.KRAKEN_API_URL
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    timeout: float = 30.0


class AcrossConfig(BaseModel):
    """Bridge API endpoint and fill polling policy."""

    api_url: str = constants.ACROSS_API_URL
    integrator_id: str = constants.ACROSS_INTEGRATOR_ID
    timeout: float = 30.0
    fill_max_attempts: int = constants.DEFAULT_FILL_MAX_ATTEMPTS
    fill_poll_interval: float = constants.DEFAULT_FILL_POLL_INTERVAL
    receipt_timeout: float = 180.0


class ChainsConfig(BaseModel):
    """Wallet key, recipient and RPC endpoints for on-chain steps."""

    private_key: Optional[str] = None
    recipient: Optional[str] = None
    infura_api_key: Optional[str] = None
    rpc_urls: Dict[int, str] = Field(default_factory=dict)


class SenseiConfig(BaseModel):
    """Top-level configuration model."""

    status: StatusConfig = Field(default_factory=StatusConfig)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    kraken: KrakenConfig = Field(default_factory=KrakenConfig)
    across: AcrossConfig = Field(default_factory=AcrossConfig)
    chains: ChainsConfig = Field(default_factory=ChainsConfig)

    def require_credentials(self) -> None:
        """Raise ``ConfigurationError`` naming every missing credential."""
        required = {
            "KRAKEN_API_KEY": self.kraken.api_key,
            "KRAKEN_API_SECRET": self.kraken.api_secret,
            "PK": self.chains.private_key,
            "RECIPIENT": self.chains.recipient,
        }
        missing = [name for name, value in required.items() if not value]
        if not self.chains.infura_api_key and not self.chains.rpc_urls:
            missing.append("INFURA_API_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )


def load_config(path: Optional[str] = None) -> SenseiConfig:
    """Load configuration from YAML file and environment.

    Args:
        path: Optional path to config file. Falls back to SENSEI_CONFIG env
            variable or 'config.yaml' in the current directory. Variables from
            a local ``.env`` file are loaded first and never override the
            real environment.
    """

    load_dotenv(find_dotenv(usecwd=True))
    config_path = path or os.getenv("SENSEI_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = SenseiConfig(**data)
    else:
        config = SenseiConfig()

    env_overrides = {
        "KRAKEN_API_KEY": (config.kraken, "api_key"),
        "KRAKEN_API_SECRET": (config.kraken, "api_secret"),
        "PK": (config.chains, "private_key"),
        "RECIPIENT": (config.chains, "recipient"),
        "INFURA_API_KEY": (config.chains, "infura_api_key"),
        "SENSEI_STATUS_URL": (config.status, "url"),
    }
    for env_name, (section, attr) in env_overrides.items():
        value = os.getenv(env_name)
        if value:
            setattr(section, attr, value)
    return config
