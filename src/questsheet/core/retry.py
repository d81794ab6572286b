"""
QuestSheet Core - Retry with exponential backoff.

Used by the completion log flusher. The synchronous registry path does not
retry; its failures go straight back to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from questsheet.core.store import StoreError

T = TypeVar("T")

log = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def backoff_delays(attempts: int, base_delay: float) -> list[float]:
    """Delays slept between `attempts` tries: base, 2*base, 4*base, ..."""
    return [base_delay * 2**i for i in range(max(attempts - 1, 0))]


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 5,
    base_delay: float = 0.12,
    *,
    operation: str = "store_call",
    retry_on: tuple[type[BaseException], ...] = (StoreError,),
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Call `fn` until it succeeds or `attempts` tries have failed.

    The delay doubles after every failure, starting at `base_delay`. No delay
    follows the final failure; its exception is re-raised to the caller.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt, delay in enumerate([*backoff_delays(attempts, base_delay), None], start=1):
        try:
            return await fn()
        except retry_on as exc:
            if delay is None:
                log.error("retry_exhausted", operation=operation, attempts=attempts, error=str(exc))
                raise
            log.warning(
                "retry_scheduled",
                operation=operation,
                attempt=attempt,
                delay_s=round(delay, 3),
                error=str(exc),
            )
            await sleep(delay)

    raise AssertionError("unreachable")


__all__ = ["backoff_delays", "retry_async"]
