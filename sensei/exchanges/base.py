"""Base exchange interface for the sensei pipeline."""

from __future__ import annotations

import abc
import logging
from typing import Callable, Dict, Optional

from ..constants import (
    DEFAULT_ORDER_MAX_ATTEMPTS,
    DEFAULT_ORDER_POLL_INTERVAL,
    DEFAULT_WITHDRAWAL_MAX_ATTEMPTS,
    DEFAULT_WITHDRAWAL_POLL_INTERVAL,
)
from ..contracts import Order, OrderRequest, PollEvent, Stage, Withdrawal
from ..errors import DataIntegrityError, StageFailed
from ..utils.retry import poll

logger = logging.getLogger(__name__)


class ExchangeClient(metaclass=abc.ABCMeta):
    """Abstract centralized exchange used to swap fiat and withdraw on-chain.

    Concrete clients implement the single-shot calls; the bounded polling
    loops and the market-buy flow are shared here.
    """

    on_poll_event: Optional[Callable[[PollEvent], None]] = None

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""
        pass

    @abc.abstractmethod
    async def fetch_balance(self) -> Optional[Dict[str, str]]:
        """Return balances keyed by asset, or ``None`` if they could not be read."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_ask_price(self, pair: str) -> float:
        """Return the best ask for ``pair``.

        Raises:
            DataIntegrityError: The price is missing, unparsable or not positive.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def create_order(self, request: OrderRequest) -> Optional[str]:
        """Place an order and return its id, or ``None`` on failure."""
        raise NotImplementedError

    @abc.abstractmethod
    async def query_order(self, txid: str) -> Order:
        """Fetch the current state of one order. May raise on transport errors."""
        raise NotImplementedError

    @abc.abstractmethod
    async def withdraw(self, asset: str, key: str, amount: float) -> Optional[str]:
        """Request a withdrawal to a pre-registered key and return its reference."""
        raise NotImplementedError

    @abc.abstractmethod
    async def query_withdrawal(self, refid: str, asset: Optional[str] = None) -> Optional[Withdrawal]:
        """Fetch the current state of one withdrawal. May raise on transport errors."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    async def poll_order_status(
        self,
        txid: str,
        max_attempts: int = DEFAULT_ORDER_MAX_ATTEMPTS,
        interval: float = DEFAULT_ORDER_POLL_INTERVAL,
    ) -> Optional[float]:
        """Poll until the order closes and return its executed price.

        Transport errors and malformed responses only consume attempts.
        Returns ``None`` once ``max_attempts`` are exhausted.
        """
        result = await poll(
            lambda: self.query_order(txid),
            label=f"Order {txid}",
            max_attempts=max_attempts,
            interval=interval,
            is_done=lambda order: order.is_closed,
            on_event=self.on_poll_event,
        )
        if not result.satisfied:
            logger.error(f"Order {txid} was not closed after {max_attempts} attempts.")
            return None

        price = result.value.price
        if price <= 0:
            raise DataIntegrityError(f"Order {txid} closed with invalid price {price}")
        logger.info(f"Order {txid} executed at {price}")
        return price

    async def poll_withdrawal_status(
        self,
        refid: str,
        asset: Optional[str] = None,
        max_attempts: int = DEFAULT_WITHDRAWAL_MAX_ATTEMPTS,
        interval: float = DEFAULT_WITHDRAWAL_POLL_INTERVAL,
    ) -> bool:
        """Poll until the withdrawal reports success or settled.

        Raises:
            StageFailed: The exchange reported the withdrawal as failed.
        """

        async def probe() -> Optional[Withdrawal]:
            withdrawal = await self.query_withdrawal(refid, asset)
            if withdrawal is None:
                logger.warning(f"No withdrawal found with refid {refid}")
            elif withdrawal.is_failed:
                raise StageFailed(
                    Stage.WITHDRAWING, f"withdrawal {refid} reported {withdrawal.status}"
                )
            elif not withdrawal.is_settled:
                logger.info(f"Withdrawal {refid} not yet confirmed: {withdrawal.status}")
            return withdrawal

        result = await poll(
            probe,
            label=f"Withdrawal {refid}",
            max_attempts=max_attempts,
            interval=interval,
            is_done=lambda w: w is not None and w.is_settled,
            fatal=(DataIntegrityError, StageFailed),
            on_event=self.on_poll_event,
        )
        if not result.satisfied:
            logger.error(f"Withdrawal {refid} was not confirmed after {max_attempts} attempts.")
            return False
        logger.info(f"Withdrawal {refid} is confirmed.")
        return True

    async def swap(
        self,
        amount: float,
        pair: str,
        max_attempts: int = DEFAULT_ORDER_MAX_ATTEMPTS,
        interval: float = DEFAULT_ORDER_POLL_INTERVAL,
    ) -> Optional[float]:
        """Market-buy the base asset of ``pair`` with ``amount`` of the quote asset.

        Volume is ``amount / best ask`` rounded to 6 decimal places.

        Returns:
            The executed price, or ``None`` if the order could not be placed
            or did not close in time.

        Raises:
            DataIntegrityError: The ask or executed price is invalid.
        """
        ask_price = await self.get_ask_price(pair)
        logger.info(f"Best ask for {pair}: {ask_price}")

        volume = f"{amount / ask_price:.6f}"
        txid = await self.create_order(
            OrderRequest(pair=pair, type="buy", ordertype="market", volume=volume)
        )
        if not txid:
            logger.error(f"Failed to place {pair} order for volume {volume}")
            return None

        return await self.poll_order_status(txid, max_attempts, interval)
