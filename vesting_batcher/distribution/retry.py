"""
Bounded retry with a fixed delay for ledger calls.

Fixed pause between attempts (no jitter or growth). Each failed attempt is
logged; exhaustion raises RetryExhausted carrying the last error.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from vesting_batcher.core.exceptions import RetryExhausted
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    delay: float,
    *,
    description: str = "rpc_call",
) -> T:
    """
    Await operation() up to max_attempts times, sleeping delay seconds between
    attempts (not after the last one). Returns the first successful result.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.warning(
                "rpc_call_failed",
                call=description,
                attempt=attempt,
                max_attempts=max_attempts,
                error=str(e),
            )
            if attempt < max_attempts:
                await asyncio.sleep(delay)
    assert last_error is not None
    raise RetryExhausted(max_attempts, last_error)
