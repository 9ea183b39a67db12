"""Orchestration of the deposit → swap → withdraw → bridge → deliver flow."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .bridges.base import BridgeClient
from .chain.registry import BASE, from_base_units, get_contract_address
from .config import PipelineSettings
from .contracts import PollEvent, Stage, StageEvent, WorkflowStatus
from .errors import PollExhausted, StageFailed
from .exchanges.base import ExchangeClient
from .persistence.models import StatusRecord
from .persistence.repository import StatusStore
from .utils.retry import poll

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Pipeline:
    """Single-flow transfer pipeline driven by the shared status record.

    Stages run strictly in order. Each one blocks on an external condition,
    then merge-writes its progress field so the status page and a restarted
    process can observe how far the transfer got.
    """

    def __init__(
        self,
        store: StatusStore,
        exchange: ExchangeClient,
        bridge: BridgeClient,
        destination_chain: Any,
        settings: Optional[PipelineSettings] = None,
        recipient: Optional[str] = None,
        on_event: Optional[Callable[[StageEvent], None]] = None,
        on_poll_event: Optional[Callable[[PollEvent], None]] = None,
    ) -> None:
        self.store = store
        self.exchange = exchange
        self.bridge_client = bridge
        self.destination_chain = destination_chain
        self.settings = settings or PipelineSettings()
        self.recipient = recipient
        self.on_event = on_event
        self.on_poll_event = on_poll_event
        if on_poll_event is not None:
            exchange.on_poll_event = on_poll_event
            bridge.on_poll_event = on_poll_event

    # ------------------------------------------------------------------
    # Stages
    async def wait_for_deposit(self) -> float:
        """Block until a positive deposit amount is submitted, then reset progress.

        A record left behind by a finished transfer still carries its amount;
        that amount only counts once the record has been written again.
        """
        logger.info("Waiting for deposit amount...")
        initial = await self.store.get_record()
        finished_version: Optional[int] = None
        if initial.status.stage is Stage.DONE:
            finished_version = initial.version
            logger.info(
                f"Previous transfer of {initial.status.gbp} already delivered; "
                "waiting for a new amount"
            )

        def submitted(record: StatusRecord) -> bool:
            if finished_version is not None and record.version <= finished_version:
                return False
            return record.status.gbp > 0

        result = await poll(
            self.store.get_record,
            label="Deposit amount",
            max_attempts=None,
            interval=self.settings.deposit_poll_interval,
            is_done=submitted,
            on_event=self.on_poll_event,
        )
        amount = result.value.status.gbp
        logger.info(f"Deposit amount received: {amount}")
        await self.store.merge_status(WorkflowStatus.reset(amount))
        return amount

    async def await_exchange_credit(self, amount: float) -> None:
        """Poll the exchange until the fiat balance covers ``amount``."""
        asset = self.settings.fiat_asset
        logger.info(
            f"Polling {asset} balance every {self.settings.balance_poll_interval} seconds..."
        )

        async def probe() -> float:
            balances = await self.exchange.fetch_balance()
            if balances is None:
                raise LookupError("Failed to retrieve balance")
            current = float(balances.get(asset) or 0)
            logger.info(f"Current {asset} balance: {current}")
            return current

        result = await poll(
            probe,
            label=f"{asset} balance",
            max_attempts=self.settings.balance_max_attempts,
            interval=self.settings.balance_poll_interval,
            is_done=lambda balance: balance >= amount,
            on_event=self.on_poll_event,
        )
        if not result.satisfied:
            raise PollExhausted(f"{asset} balance", result.attempts, result.value)
        logger.info(f"Balance reached {result.value}. Proceeding to swap.")
        await self.store.merge_status({"gbpKraken": amount})

    async def swap(self, amount: float) -> float:
        """Swap ``amount`` fiat and return the stablecoin amount kept for withdrawal."""
        price = await self.exchange.swap(
            amount,
            self.settings.swap_pair,
            max_attempts=self.settings.order_max_attempts,
            interval=self.settings.order_poll_interval,
        )
        if not price:
            raise StageFailed(Stage.SWAPPING, "swap failed or was not initiated")
        usd_amount = (1 / price) * amount * self.settings.reserve_factor
        logger.info(f"Swapped {amount} at {price}; keeping {usd_amount}")
        await self.store.merge_status({"usdcKraken": usd_amount})
        return usd_amount

    async def withdraw(self, usd_amount: float) -> str:
        """Withdraw to the intermediary chain and wait for confirmation."""
        asset = self.settings.stablecoin_asset
        refid = await self.exchange.withdraw(asset, self.settings.withdrawal_key, usd_amount)
        if not refid:
            raise StageFailed(Stage.WITHDRAWING, "failed to initiate withdrawal")
        logger.info(f"Withdrawal initiated with refid: {refid}")

        confirmed = await self.exchange.poll_withdrawal_status(
            refid,
            asset,
            max_attempts=self.settings.withdrawal_max_attempts,
            interval=self.settings.withdrawal_poll_interval,
        )
        if not confirmed:
            raise StageFailed(Stage.WITHDRAWING, f"withdrawal {refid} was not confirmed")
        await self.store.merge_status({"usdcOp": usd_amount})
        return refid

    async def bridge(self, usd_amount: float) -> float:
        """Bridge the withdrawn amount net of the exchange fee."""
        bridged = usd_amount - self.settings.withdrawal_fee
        if bridged <= 0:
            raise StageFailed(
                Stage.BRIDGING,
                f"nothing left to bridge from {usd_amount} after a "
                f"{self.settings.withdrawal_fee} withdrawal fee",
            )
        if not await self.bridge_client.bridge(bridged):
            raise StageFailed(Stage.BRIDGING, "bridge failed")
        logger.info(f"Bridged {bridged} successfully.")
        await self.store.merge_status({"usdcBridged": bridged})
        return bridged

    async def deliver(self, usd_amount: float) -> str:
        """Forward the whole destination balance to the recipient."""
        status = await self.store.get_status()
        recipient = status.address or self.recipient
        if not recipient:
            raise StageFailed(Stage.DELIVERING, "no recipient address configured")

        token = get_contract_address("usdc", BASE)
        balance = await self.destination_chain.balance_of(token)
        logger.info(f"Total USDC on {self.destination_chain.name}: {from_base_units(balance)}")
        if balance <= 0:
            raise StageFailed(Stage.DELIVERING, "no balance to deliver")

        receipt = await self.destination_chain.transfer(token, recipient, balance)
        tx_hash = receipt["transactionHash"]
        logger.info(f"USDC sent successfully. Transaction hash: {tx_hash}")
        await self.store.merge_status({"usdcBase": usd_amount})
        return tx_hash

    # ------------------------------------------------------------------
    async def run(self) -> WorkflowStatus:
        """Run every stage once and return the final status."""
        try:
            amount = await self._stage(Stage.AWAITING_DEPOSIT, self.wait_for_deposit)
            await self._stage(Stage.AWAITING_EXCHANGE_CREDIT, self.await_exchange_credit, amount)
            usd_amount = await self._stage(Stage.SWAPPING, self.swap, amount)
            await self._stage(Stage.WITHDRAWING, self.withdraw, usd_amount)
            await self._stage(Stage.BRIDGING, self.bridge, usd_amount)
            await self._stage(Stage.DELIVERING, self.deliver, usd_amount)
        finally:
            await self.bridge_client.drain_reconciliations()
        self._emit(StageEvent(stage=Stage.DONE, status="completed"))
        return await self.store.get_status()

    async def _stage(
        self, stage: Stage, action: Callable[..., Awaitable[T]], *args: Any
    ) -> T:
        self._emit(StageEvent(stage=stage, status="started"))
        try:
            result = await action(*args)
        except Exception as e:
            self._emit(StageEvent(stage=stage, status="failed", detail=str(e)))
            raise
        self._emit(StageEvent(stage=stage, status="completed"))
        return result

    def _emit(self, event: StageEvent) -> None:
        if event.status == "failed":
            logger.error(f"Stage {event.stage.value} failed: {event.detail}")
        else:
            logger.info(f"Stage {event.stage.value} {event.status}")
        if self.on_event is not None:
            self.on_event(event)


def summarize(status: WorkflowStatus) -> Dict[str, Any]:
    """Status document plus the derived stage, for display."""
    return {**status.to_document(), "stage": status.stage.value}
