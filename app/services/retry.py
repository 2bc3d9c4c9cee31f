from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_DELAY_SECONDS = 0.5


async def retry(
    block: Callable[[], Awaitable[T]],
    *,
    retries: int = DEFAULT_RETRIES,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
) -> T:
    """Await `block()` until it succeeds, retrying every failure after a fixed delay.

    `retries` counts the extra attempts, so the default makes four calls in total
    before the last exception is re-raised.
    """

    remaining = retries
    while True:
        try:
            return await block()
        except Exception as exc:
            logger.debug("Retryable call failed (%d retries left): %s", remaining, exc)
            if remaining == 0:
                raise
            remaining -= 1
            await asyncio.sleep(delay_seconds)
