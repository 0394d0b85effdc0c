from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from ..errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int, base: float = 1.5, jitter: float = 0.5) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base=base, jitter=jitter)
    await asyncio.sleep(delay)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base: float = 1.5,
    jitter: float = 0.5,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: str = "operation",
) -> T:
    """Await ``func`` until it succeeds or ``attempts`` are exhausted.

    Exhaustion is reported as ``TransientError`` so callers can retry the
    whole request later.
    """
    last_error: BaseException | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except retry_on as e:
            last_error = e
            logger.warning(f"{description} failed (attempt {attempt}/{attempts}): {e}")
            if attempt < attempts:
                await schedule_retry(attempt, base=base, jitter=jitter)
    raise TransientError(
        f"{description} failed after {attempts} attempts: {last_error}"
    ) from last_error
