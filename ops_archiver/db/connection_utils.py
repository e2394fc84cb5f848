from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from ..utils.circuit_breaker import CircuitBreaker
from ..utils.errors import CircuitBreakerOpenError, DatabaseConnectionError

T = TypeVar("T")

logger = logging.getLogger("ops_archiver")


def _jittered(seconds: float, jitter: float) -> float:
    if not jitter:
        return seconds
    spread = jitter * seconds
    return max(0.0, seconds + random.uniform(-spread, spread))


async def connect_with_retry(
    cb: CircuitBreaker,
    open_error: CircuitBreakerOpenError,
    connect_fn: Callable[[], Awaitable[T]],
    retries: int = 3,
    delay: float = 0.5,
    *,
    max_delay: float | None = None,
    jitter: float = 0.0,
) -> T:
    """Open a hot-store connection, retrying with exponential backoff.

    Every attempt runs through ``cb`` so failed attempts count towards
    opening it. ``open_error`` is raised when the breaker is (or becomes)
    open; exhausting ``retries`` raises ``DatabaseConnectionError``.
    """
    attempts = max(1, retries)
    backoff = delay
    for attempt in range(1, attempts + 1):
        try:
            return await cb.call(connect_fn)
        except CircuitBreakerOpenError:
            raise open_error from None
        except Exception as exc:
            if attempt == attempts:
                logger.error(f"Giving up connecting after {attempts} attempts: {exc}")
                raise DatabaseConnectionError(str(exc)) from exc
            wait = _jittered(backoff, jitter)
            logger.warning(
                f"Connection attempt {attempt}/{attempts} failed ({exc}), "
                f"retrying in {wait:.2f}s"
            )
            await asyncio.sleep(wait)
            backoff *= 2
            if max_delay is not None:
                backoff = min(backoff, max_delay)
