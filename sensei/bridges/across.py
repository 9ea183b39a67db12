"""Across protocol bridge client: quote, execute and fill."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Set

import httpx

from ..chain.registry import (
    BASE,
    OPTIMISM,
    SPOKE_POOL_ABI,
    get_contract_address,
    to_base_units,
)
from ..constants import (
    ACROSS_API_URL,
    ACROSS_INTEGRATOR_ID,
    DEFAULT_FILL_MAX_ATTEMPTS,
    DEFAULT_FILL_POLL_INTERVAL,
)
from ..contracts import BridgeProgress, BridgeQuote, BridgeRoute, PollEvent, Stage
from ..errors import DataIntegrityError, PollExhausted, ReceiptNotFound, StageFailed
from ..utils.retry import poll
from .base import BridgeClient

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
# marks the integrator id appended to deposit calldata
INTEGRATOR_DELIMITER = "1dc0de"


def integrator_suffix(integrator_id: str) -> str:
    """Calldata tag identifying the integrator to the relayer network."""
    tag = integrator_id.removeprefix("0x").lower()
    if len(tag) != 4 or any(c not in "0123456789abcdef" for c in tag):
        raise ValueError(f"Integrator id must be 2 hex bytes, got {integrator_id!r}")
    return INTEGRATOR_DELIMITER + tag


def default_route() -> BridgeRoute:
    """USDC from Optimism to Base."""
    return BridgeRoute(
        origin_chain_id=OPTIMISM,
        destination_chain_id=BASE,
        input_token=get_contract_address("usdc", OPTIMISM),
        output_token=get_contract_address("usdc", BASE),
    )


class AcrossBridgeClient(BridgeClient):
    """Bridge through Across using a funded wallet on the origin chain.

    Progress is reported per milestone (approve, deposit, fill) to the
    optional ``on_progress`` callback; only the aggregate result of
    :meth:`bridge` drives the pipeline.

    When a transaction receipt cannot be found, a reconciliation task looks
    the deposit up by transaction hash and logs what it finds. It never
    changes the result of the call that scheduled it; callers that want its
    output await :meth:`drain_reconciliations`.
    """

    def __init__(
        self,
        chain: Any,
        api_url: str = ACROSS_API_URL,
        integrator_id: str = ACROSS_INTEGRATOR_ID,
        route: Optional[BridgeRoute] = None,
        fill_max_attempts: int = DEFAULT_FILL_MAX_ATTEMPTS,
        fill_poll_interval: float = DEFAULT_FILL_POLL_INTERVAL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        on_progress: Optional[Callable[[BridgeProgress], None]] = None,
        on_poll_event: Optional[Callable[[PollEvent], None]] = None,
    ) -> None:
        if chain is None:
            raise ValueError("A funded origin-chain wallet is required")
        self._chain = chain
        self.route = route or default_route()
        self._data_suffix = integrator_suffix(integrator_id)
        self.fill_max_attempts = fill_max_attempts
        self.fill_poll_interval = fill_poll_interval
        self.on_progress = on_progress
        self.on_poll_event = on_poll_event
        self._client = client or httpx.AsyncClient(
            base_url=api_url.rstrip("/"), timeout=timeout
        )
        self._reconciliations: Set[asyncio.Task] = set()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    async def bridge(self, amount: float) -> bool:
        try:
            logger.info(f"Initiating bridge of {amount} from chain {self.route.origin_chain_id}")
            quote = await self.get_quote(amount)
            logger.info(
                f"Quote received: {quote.input_amount} in, {quote.output_amount} out. "
                "Executing bridge transaction..."
            )
            await self.execute_quote(quote)
        except Exception as e:
            logger.error(f"Error during bridging process: {e}")
            if isinstance(e, ReceiptNotFound) or "TransactionReceiptNotFound" in str(e):
                self._schedule_reconciliation(getattr(e, "tx_hash", None))
            return False
        logger.info("Bridge process completed successfully")
        return True

    async def get_quote(self, amount: float) -> BridgeQuote:
        """Request suggested fees for bridging ``amount`` along the route."""
        input_amount = to_base_units(amount)
        if input_amount <= 0:
            raise DataIntegrityError(f"Bridge amount must be positive, got {amount}")

        response = await self._client.get(
            "/suggested-fees",
            params={
                "inputToken": self.route.input_token,
                "outputToken": self.route.output_token,
                "originChainId": self.route.origin_chain_id,
                "destinationChainId": self.route.destination_chain_id,
                "amount": str(input_amount),
                "recipient": self._chain.address,
            },
        )
        response.raise_for_status()
        data = response.json()
        try:
            total_fee = int(data["totalRelayFee"]["total"])
            output_amount = int(data.get("outputAmount") or input_amount - total_fee)
            quote = BridgeQuote(
                route=self.route,
                recipient=self._chain.address,
                input_amount=input_amount,
                output_amount=output_amount,
                total_relay_fee=total_fee,
                quote_timestamp=int(data["timestamp"]),
                fill_deadline=int(data["fillDeadline"]),
                exclusivity_deadline=int(data.get("exclusivityDeadline") or 0),
                exclusive_relayer=data.get("exclusiveRelayer") or ZERO_ADDRESS,
                spoke_pool=data["spokePoolAddress"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DataIntegrityError(f"Malformed bridge quote: {e}") from e
        if quote.output_amount <= 0:
            raise DataIntegrityError(
                f"Relay fee {total_fee} consumes the whole input {input_amount}"
            )
        return quote

    async def execute_quote(self, quote: BridgeQuote) -> int:
        """Approve, deposit and wait for the fill. Returns the deposit id."""
        await self._approve(quote)
        deposit_id = await self._deposit(quote)
        await self._wait_for_fill(deposit_id)
        return deposit_id

    async def get_deposit_status(self, **params: Any) -> Dict[str, Any]:
        response = await self._client.get(
            "/deposit/status",
            params={"originChainId": self.route.origin_chain_id, **params},
        )
        response.raise_for_status()
        return response.json()

    async def drain_reconciliations(self) -> None:
        if self._reconciliations:
            await asyncio.gather(*self._reconciliations, return_exceptions=True)

    # ------------------------------------------------------------------
    # Milestones
    async def _approve(self, quote: BridgeQuote) -> None:
        token = quote.route.input_token
        allowance = await self._chain.allowance(token, quote.spoke_pool)
        if allowance >= quote.input_amount:
            self._report(BridgeProgress(step="approve", status="txSuccess", detail="allowance sufficient"))
            return
        self._report(BridgeProgress(step="approve", status="txPending"))
        receipt = await self._chain.approve(token, quote.spoke_pool, quote.input_amount)
        self._report(
            BridgeProgress(step="approve", status="txSuccess", tx_hash=receipt["transactionHash"])
        )

    async def _deposit(self, quote: BridgeQuote) -> int:
        self._report(BridgeProgress(step="deposit", status="txPending"))
        receipt = await self._chain.transact(
            quote.spoke_pool,
            SPOKE_POOL_ABI,
            "depositV3",
            self._chain.address,
            quote.recipient,
            quote.route.input_token,
            quote.route.output_token,
            quote.input_amount,
            quote.output_amount,
            quote.route.destination_chain_id,
            quote.exclusive_relayer,
            quote.quote_timestamp,
            quote.fill_deadline,
            quote.exclusivity_deadline,
            b"",
            data_suffix=self._data_suffix,
        )
        events = self._chain.decode_events(
            quote.spoke_pool, SPOKE_POOL_ABI, "V3FundsDeposited", receipt
        )
        if not events:
            raise DataIntegrityError(
                f"Deposit {receipt['transactionHash']} emitted no V3FundsDeposited event"
            )
        deposit_id = int(events[0]["depositId"])
        self._report(
            BridgeProgress(
                step="deposit",
                status="txSuccess",
                tx_hash=receipt["transactionHash"],
                deposit_id=deposit_id,
            )
        )
        return deposit_id

    async def _wait_for_fill(self, deposit_id: int) -> None:
        async def probe() -> Dict[str, Any]:
            status = await self.get_deposit_status(depositId=deposit_id)
            if status.get("status") == "expired":
                raise StageFailed(Stage.BRIDGING, f"deposit {deposit_id} expired unfilled")
            return status

        label = f"Bridge deposit {deposit_id}"
        result = await poll(
            probe,
            label=label,
            max_attempts=self.fill_max_attempts,
            interval=self.fill_poll_interval,
            is_done=lambda status: status.get("status") == "filled",
            fatal=(StageFailed,),
            on_event=self.on_poll_event,
        )
        if not result.satisfied:
            self._report(BridgeProgress(step="fill", status="txFailed", deposit_id=deposit_id))
            raise PollExhausted(label, result.attempts, result.value)
        self._report(
            BridgeProgress(
                step="fill",
                status="txSuccess",
                tx_hash=result.value.get("fillTx"),
                deposit_id=deposit_id,
            )
        )

    def _report(self, progress: BridgeProgress) -> None:
        if progress.status == "txSuccess":
            if progress.step == "approve":
                logger.info("Token approval successful")
            elif progress.step == "deposit":
                logger.info(f"Deposit successful. Deposit ID: {progress.deposit_id}")
            else:
                logger.info(f"Fill successful. Fill tx: {progress.tx_hash}")
        if self.on_progress is not None:
            self.on_progress(progress)

    # ------------------------------------------------------------------
    # Reconciliation
    def _schedule_reconciliation(self, tx_hash: Optional[str]) -> None:
        if not tx_hash:
            logger.warning("Receipt not found but no transaction hash to reconcile")
            return
        task = asyncio.create_task(self._reconcile(tx_hash))
        self._reconciliations.add(task)
        task.add_done_callback(self._reconciliations.discard)

    async def _reconcile(self, tx_hash: str) -> None:
        try:
            status = await self.get_deposit_status(depositTxHash=tx_hash)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error during deposit transaction search for {tx_hash}: {e}")
            return
        logger.info(f"Deposit transaction {tx_hash} found: {status}")
