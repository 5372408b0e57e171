"""Retry and circuit breaking for outbound gateway calls.

Only the SMS gateway goes through here today. Email backends report
failure as a bool and are not retried.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import ParamSpec, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# Network-level failures worth another attempt; HTTP error statuses are not
RETRYABLE_EXCEPTIONS = (
    asyncio.TimeoutError,
    ConnectionError,
    httpx.TransportError,
)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """The gateway is being skipped after repeated failures."""

    pass


@dataclass
class CircuitBreaker:
    """Stops calling a gateway after repeated failures.

    - CLOSED: calls pass through
    - OPEN: calls are rejected until ``recovery_timeout`` elapses
    - HALF_OPEN: trial calls; one failure reopens, enough successes close
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    trial_successes: int = 3
    clock: Callable[[], float] = time.monotonic

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    failures: int = field(default=0, init=False)
    opened_at: float = field(default=0.0, init=False)
    successes: int = field(default=0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def _transition(self, state: CircuitState) -> None:
        if state != self.state:
            logger.info(f"Circuit '{self.name}' {self.state.value} -> {state.value}")
        self.state = state

    async def _admit(self) -> None:
        async with self._lock:
            if self.state == CircuitState.OPEN:
                if self.clock() - self.opened_at < self.recovery_timeout:
                    raise CircuitOpenError(f"Circuit breaker '{self.name}' is open")
                self._transition(CircuitState.HALF_OPEN)
                self.successes = 0

    async def _record(self, error: Exception | None) -> None:
        async with self._lock:
            if error is None:
                if self.state == CircuitState.HALF_OPEN:
                    self.successes += 1
                    if self.successes < self.trial_successes:
                        return
                    self._transition(CircuitState.CLOSED)
                self.failures = 0
                return

            self.failures += 1
            if self.state == CircuitState.HALF_OPEN or self.failures >= self.failure_threshold:
                logger.warning(f"Circuit '{self.name}' opening after {self.failures} failures: {error!r}")
                self._transition(CircuitState.OPEN)
                self.opened_at = self.clock()

    async def call(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Run ``func`` unless the circuit is open, recording the outcome."""
        await self._admit()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            await self._record(e)
            raise
        await self._record(None)
        return result

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.successes = 0


_circuit_breakers: dict[str, CircuitBreaker] = {}


def get_circuit_breaker(name: str) -> CircuitBreaker:
    """Get or create a process-wide circuit breaker by name."""
    if name not in _circuit_breakers:
        _circuit_breakers[name] = CircuitBreaker(name=name)
    return _circuit_breakers[name]


sms_circuit = get_circuit_breaker("sms")


async def with_retry(
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 5.0,
    **kwargs: P.kwargs,
) -> T:  # type: ignore[return-value]
    """Await ``func`` with exponential backoff on ``RETRYABLE_EXCEPTIONS``.

    The last error is re-raised once attempts run out.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        reraise=True,
    ):
        with attempt:
            return await func(*args, **kwargs)
