"""
Circuit breaker for single-feed provider calls.

States:
  CLOSED    requests pass through
  OPEN      the feed failed repeatedly; calls fail fast until the cooldown ends
  HALF_OPEN cooldown elapsed; one probe call decides between CLOSED and OPEN
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Coroutine, TypeVar

from shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when the circuit is open and calls are being rejected."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN. Retry after {retry_after:.0f}s.")


class CircuitBreaker:
    """
    Async circuit breaker guarding one provider feed.

    Args:
        name: Identifier for logging, usually the provider name.
        failure_threshold: Consecutive failures before opening the circuit.
        recovery_timeout_s: Seconds to wait in OPEN state before probing.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout_s: float = 60.0,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout_s = recovery_timeout_s

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: float = 0.0
        self._probe_in_flight = False
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._cooldown_remaining() <= 0:
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "consecutive_failures": self._consecutive_failures,
            "retry_after_s": round(max(self._cooldown_remaining(), 0.0), 1)
            if self._state == CircuitState.OPEN
            else None,
        }

    def _cooldown_remaining(self) -> float:
        return self.recovery_timeout_s - (time.monotonic() - self._opened_at)

    async def call(
        self, func: Callable[..., Coroutine[Any, Any, T]], *args: Any, **kwargs: Any
    ) -> T:
        state = self.state
        if state == CircuitState.OPEN:
            raise CircuitBreakerOpen(self.name, max(self._cooldown_remaining(), 1.0))

        if state == CircuitState.HALF_OPEN:
            async with self._lock:
                if self._probe_in_flight:
                    raise CircuitBreakerOpen(self.name, 5.0)
                self._probe_in_flight = True

        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            await self._record_failure(exc)
            raise
        await self._record_success()
        return result

    async def _record_success(self) -> None:
        async with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("circuit_breaker_closed", name=self.name)
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._probe_in_flight = False

    async def _record_failure(self, exc: Exception) -> None:
        async with self._lock:
            self._consecutive_failures += 1
            reopen = self._probe_in_flight
            self._probe_in_flight = False
            if reopen or self._consecutive_failures >= self.failure_threshold:
                if self._state != CircuitState.OPEN or reopen:
                    logger.warning(
                        "circuit_breaker_opened",
                        name=self.name,
                        failures=self._consecutive_failures,
                        error=str(exc),
                    )
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
