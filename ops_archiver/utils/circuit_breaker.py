import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

from ..monitoring.metrics import metrics
from .errors import CircuitBreakerOpenError

T = TypeVar("T")

logger = logging.getLogger("ops_archiver")


class CircuitBreaker:
    """Async circuit breaker guarding calls to the hot store.

    After ``failure_threshold`` consecutive failures the breaker opens and
    rejects calls for ``recovery_time`` seconds; the next call after that is
    let through and either closes it again or re-opens it. When named, the
    state is published as the ``{name}_circuit_open`` gauge.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_time: float = 30.0,
        *,
        name: str | None = None,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_time = recovery_time
        self.name = name
        self.failure_count = 0
        self.open_until: float | None = None
        self._lock = asyncio.Lock()
        self._publish()

    @property
    def label(self) -> str:
        return self.name or "circuit"

    @property
    def is_open(self) -> bool:
        return self.open_until is not None and time.monotonic() < self.open_until

    async def allow(self) -> bool:
        async with self._lock:
            if self.open_until is None:
                return True
            if time.monotonic() < self.open_until:
                return False
            logger.info(f"{self.label} breaker recovery window elapsed, retrying")
            self._close()
            return True

    async def record_success(self) -> None:
        async with self._lock:
            self._close()

    async def record_failure(self) -> None:
        async with self._lock:
            self.failure_count += 1
            if self.failure_count >= self.failure_threshold and not self.is_open:
                self.open_until = time.monotonic() + self.recovery_time
                logger.warning(
                    f"{self.label} breaker opened after {self.failure_count} "
                    f"failures, rejecting calls for {self.recovery_time}s"
                )
            self._publish()

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run ``func`` through the breaker, recording its outcome."""
        if not await self.allow():
            raise CircuitBreakerOpenError(f"{self.label} breaker open")
        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self.record_failure()
            raise
        await self.record_success()
        return result

    def _close(self) -> None:
        self.failure_count = 0
        self.open_until = None
        self._publish()

    def _publish(self) -> None:
        if self.name:
            metrics.set(f"{self.name}_circuit_open", 1.0 if self.is_open else 0.0)
