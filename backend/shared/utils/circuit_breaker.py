"""
Circuit breaker for upstream calls made on a timer.

The reconciler calls through the breaker once per tick, so there is never
more than one call in flight. After ``failure_threshold`` consecutive
failures the breaker opens and rejects calls until ``recovery_timeout_s``
has passed. The failure count is kept while open, so the first call after
the cooldown decides: a success closes the circuit, a failure reopens it
for another full cooldown.
"""
from __future__ import annotations

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class CircuitBreakerOpen(Exception):
    """Raised when the circuit is open and calls are being rejected."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit '{name}' is open, next attempt in {retry_after:.0f}s")


class CircuitBreaker:
    """
    Cooldown gate around a single upstream call.

    Args:
        name: Identifier for logging and /status.
        failure_threshold: Consecutive failures before opening.
        recovery_timeout_s: Seconds the circuit stays open after a failure.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout_s = recovery_timeout_s
        self._clock = clock

        self._failures = 0
        self._successes = 0
        self._open_until: Optional[float] = None

    def _remaining(self) -> float:
        if self._open_until is None:
            return 0.0
        return max(self._open_until - self._clock(), 0.0)

    @property
    def state(self) -> CircuitState:
        return CircuitState.OPEN if self._remaining() > 0 else CircuitState.CLOSED

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failures,
            "success_count": self._successes,
            "retry_after_s": round(self._remaining(), 1) or None,
        }

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        remaining = self._remaining()
        if remaining > 0:
            raise CircuitBreakerOpen(self.name, remaining)

        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            self._record_failure(exc)
            raise
        self._record_success()
        return result

    def reset(self) -> None:
        self._failures = 0
        self._open_until = None

    def _record_success(self) -> None:
        if self._open_until is not None:
            logger.info("circuit_breaker_closed", name=self.name)
        self.reset()
        self._successes += 1

    def _record_failure(self, exc: Exception) -> None:
        self._failures += 1
        if self._failures < self.failure_threshold:
            return
        reopened = self._open_until is not None
        self._open_until = self._clock() + self.recovery_timeout_s
        logger.warning(
            "circuit_breaker_reopened" if reopened else "circuit_breaker_opened",
            name=self.name,
            failures=self._failures,
            error=str(exc),
        )
