"""Base bridge interface for cross-chain transfers."""

from __future__ import annotations

import abc
from typing import Callable, Optional

from ..contracts import PollEvent


class BridgeClient(metaclass=abc.ABCMeta):
    """Abstract bridge moving the stablecoin between two networks."""

    on_poll_event: Optional[Callable[[PollEvent], None]] = None

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""
        pass

    @abc.abstractmethod
    async def bridge(self, amount: float) -> bool:
        """Bridge ``amount`` (human units) and report aggregate success."""
        raise NotImplementedError

    async def drain_reconciliations(self) -> None:
        """Wait for any diagnostic follow-up tasks (none by default)."""
        pass
