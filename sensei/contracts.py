"""Core data contracts for the sensei transfer pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Stage(str, Enum):
    """Pipeline stages, strictly sequential."""

    AWAITING_DEPOSIT = "awaiting_deposit"
    AWAITING_EXCHANGE_CREDIT = "awaiting_exchange_credit"
    SWAPPING = "swapping"
    WITHDRAWING = "withdrawing"
    BRIDGING = "bridging"
    DELIVERING = "delivering"
    DONE = "done"


class WorkflowStatus(BaseModel):
    """Progress vector of the single in-flight transfer.

    Serialised with the camelCase keys the status page reads. Once a later
    field is positive the earlier ones are final.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    gbp: float = 0.0
    gbp_kraken: float = Field(default=0.0, alias="gbpKraken")
    usdc_kraken: float = Field(default=0.0, alias="usdcKraken")
    usdc_op: float = Field(default=0.0, alias="usdcOp")
    usdc_bridged: float = Field(default=0.0, alias="usdcBridged")
    usdc_base: float = Field(default=0.0, alias="usdcBase")
    address: Optional[str] = None

    @classmethod
    def reset(cls, amount: float) -> Dict[str, Any]:
        """Partial written when a new deposit is detected."""
        return {
            "gbp": amount,
            "gbpKraken": 0,
            "usdcOp": 0,
            "usdcBase": 0,
            "usdcKraken": 0,
            "usdcBridged": 0,
        }

    @classmethod
    def normalize_partial(cls, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Map attribute or alias keys onto document keys, rejecting unknowns."""
        normalized: Dict[str, Any] = {}
        for key, value in partial.items():
            if key in STATUS_KEYS:
                normalized[key] = value
            elif key in cls.model_fields:
                normalized[cls.model_fields[key].alias or key] = value
            else:
                raise ValueError(f"Unknown status field: {key}")
        return normalized

    def merged(self, partial: Dict[str, Any]) -> "WorkflowStatus":
        """Return a copy with ``partial`` overlaid (shallow)."""
        document = self.to_document()
        document.update(self.normalize_partial(partial))
        return WorkflowStatus.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        """Flat key/value document as persisted and served."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @property
    def stage(self) -> Stage:
        """Stage implied by the furthest positive field."""
        if self.usdc_base > 0:
            return Stage.DONE
        if self.usdc_bridged > 0:
            return Stage.DELIVERING
        if self.usdc_op > 0:
            return Stage.BRIDGING
        if self.usdc_kraken > 0:
            return Stage.WITHDRAWING
        if self.gbp_kraken > 0:
            return Stage.SWAPPING
        if self.gbp > 0:
            return Stage.AWAITING_EXCHANGE_CREDIT
        return Stage.AWAITING_DEPOSIT


STATUS_KEYS = frozenset(
    field.alias or name for name, field in WorkflowStatus.model_fields.items()
)


class OrderRequest(BaseModel):
    """Parameters for placing an exchange order."""

    pair: str
    type: Literal["buy", "sell"] = "buy"
    ordertype: str = "market"
    volume: str
    price: Optional[str] = None
    leverage: Optional[str] = None
    validate_only: bool = Field(default=False, alias="validate")

    model_config = ConfigDict(populate_by_name=True)

    def to_form(self) -> Dict[str, str]:
        form = {
            "ordertype": self.ordertype,
            "type": self.type,
            "pair": self.pair,
            "volume": self.volume,
            "validate": "true" if self.validate_only else "false",
        }
        if self.price and self.ordertype in ("limit", "stop-loss", "take-profit"):
            form["price"] = self.price
        if self.leverage:
            form["leverage"] = self.leverage
        return form


class Order(BaseModel):
    """Exchange order as observed while polling."""

    txid: str
    pair: Optional[str] = None
    volume: Optional[str] = None
    status: str = "pending"
    price: float = 0.0

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"


class Withdrawal(BaseModel):
    """Exchange withdrawal as observed while polling."""

    refid: str
    asset: Optional[str] = None
    amount: Optional[float] = None
    status: str = "pending"

    @property
    def is_settled(self) -> bool:
        return self.status.lower() in ("success", "settled")

    @property
    def is_failed(self) -> bool:
        return self.status.lower() in ("failure", "failed", "canceled")


class BridgeRoute(BaseModel):
    """Origin/destination chain and token pair for a bridge transfer."""

    origin_chain_id: int
    destination_chain_id: int
    input_token: str
    output_token: str


class BridgeQuote(BaseModel):
    """Deposit descriptor returned by the bridge quote endpoint."""

    route: BridgeRoute
    recipient: str
    input_amount: int
    output_amount: int
    total_relay_fee: int = 0
    quote_timestamp: int
    fill_deadline: int
    exclusivity_deadline: int = 0
    exclusive_relayer: str = "0x0000000000000000000000000000000000000000"
    spoke_pool: str


class BridgeProgress(BaseModel):
    """One milestone update of a bridge execution."""

    step: Literal["approve", "deposit", "fill"]
    status: Literal["txPending", "txSuccess", "txFailed"]
    tx_hash: Optional[str] = None
    deposit_id: Optional[int] = None
    detail: Optional[str] = None


class PollEvent(BaseModel):
    """Structured record of one bounded-poll attempt."""

    label: str
    attempt: int
    max_attempts: Optional[int] = None
    outcome: Literal["satisfied", "pending", "error"]
    detail: Optional[str] = None


class StageEvent(BaseModel):
    """Structured record of a pipeline stage transition."""

    stage: Stage
    status: Literal["started", "completed", "failed"]
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
