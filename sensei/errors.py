"""Exception types raised across the sensei pipeline."""

from __future__ import annotations

from typing import Any, Optional


class SenseiError(Exception):
    """Base class for all sensei errors."""


class ConfigurationError(SenseiError):
    """Missing credentials or malformed client setup."""


class DataIntegrityError(SenseiError):
    """A response was well-formed on the wire but semantically invalid."""


class ExchangeAPIError(SenseiError):
    """Exchange returned a non-empty error list."""

    def __init__(self, endpoint: str, errors: list[str]) -> None:
        self.endpoint = endpoint
        self.errors = list(errors)
        super().__init__(f"{endpoint}: {', '.join(self.errors)}")


class PollExhausted(SenseiError):
    """A bounded poll ran out of attempts without reaching its target."""

    def __init__(self, label: str, attempts: int, last_value: Any = None) -> None:
        self.label = label
        self.attempts = attempts
        self.last_value = last_value
        super().__init__(f"{label} not satisfied after {attempts} attempts")


class StageFailed(SenseiError):
    """A one-shot pipeline action reported failure."""

    def __init__(self, stage: Any, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"{getattr(stage, 'value', stage)}: {reason}")


class StaleStatusError(SenseiError):
    """Compare-and-swap merge rejected because the stored version moved on."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected status version {expected}, found {actual}")


class ChainTransactionError(SenseiError):
    """An on-chain transaction was mined but reverted."""

    def __init__(self, tx_hash: str, detail: Optional[str] = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"transaction {tx_hash} failed" + (f": {detail}" if detail else ""))


class ReceiptNotFound(SenseiError):
    """A sent transaction's receipt could not be located in time."""

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"receipt for transaction {tx_hash} not found")
