"""Sensei: fiat deposit to cross-chain stablecoin delivery."""

__version__ = "0.1.0"

from .bridges import get_bridge
from .config import SenseiConfig, load_config
from .contracts import Stage, StageEvent, WorkflowStatus
from .exchanges import get_exchange
from .persistence import get_store
from .pipeline import Pipeline

__all__ = [
    "Pipeline",
    "SenseiConfig",
    "Stage",
    "StageEvent",
    "WorkflowStatus",
    "get_bridge",
    "get_exchange",
    "get_store",
    "load_config",
]
