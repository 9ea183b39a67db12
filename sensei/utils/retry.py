from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

from ..contracts import PollEvent
from ..errors import DataIntegrityError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt)
    await asyncio.sleep(delay)


@dataclass
class PollResult(Generic[T]):
    """Outcome of a bounded poll."""

    value: Optional[T]
    attempts: int
    satisfied: bool


async def poll(
    probe: Callable[[], Awaitable[T]],
    *,
    label: str,
    max_attempts: Optional[int],
    interval: float,
    is_done: Callable[[T], bool] = bool,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    fatal: Tuple[Type[BaseException], ...] = (DataIntegrityError,),
    on_event: Optional[Callable[[PollEvent], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> PollResult[T]:
    """Call ``probe`` until ``is_done`` accepts its value.

    Exceptions listed in ``retry_on`` are logged and consume an attempt;
    exceptions in ``fatal`` propagate immediately. ``max_attempts=None``
    polls forever. Sleeps ``interval`` seconds between attempts, not after
    the last one.
    """

    attempt = 0
    value: Optional[T] = None

    def record(outcome: str, detail: Optional[str] = None) -> None:
        if on_event is not None:
            on_event(
                PollEvent(
                    label=label,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    outcome=outcome,
                    detail=detail,
                )
            )

    while max_attempts is None or attempt < max_attempts:
        attempt += 1
        try:
            value = await probe()
        except fatal:
            record("error", "fatal")
            raise
        except retry_on as e:
            logger.warning(f"{label}: attempt {attempt} failed: {e}")
            record("error", str(e))
        else:
            if is_done(value):
                record("satisfied")
                return PollResult(value=value, attempts=attempt, satisfied=True)
            logger.info(f"{label}: attempt {attempt} not yet satisfied")
            record("pending")

        if max_attempts is None or attempt < max_attempts:
            await sleep(interval)

    logger.error(f"{label}: not satisfied after {attempt} attempts")
    return PollResult(value=value, attempts=attempt, satisfied=False)

