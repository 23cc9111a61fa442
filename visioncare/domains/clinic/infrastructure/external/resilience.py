# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Clinic)
# Description: Circuit breaker for the external PostgREST stores.
# ============================================================================
"""Resilience patterns for the external store clients.

Each client owns one breaker. Only transport failures and server errors
count as failures: a 409 or a 404 is a valid answer from a healthy service.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Probing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures before opening the circuit.
        recovery_timeout: Seconds to wait before probing recovery.
        success_threshold: Successes needed in half-open to close.
    """

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    success_threshold: int = 2


@dataclass
class _BreakerState:
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    opened_at: float = 0.0
    last_state_change: float = field(default_factory=time.monotonic)


class CircuitOpenError(Exception):
    """Raised when the circuit is open and the call was not attempted."""

    def __init__(self, name: str, retry_in: float):
        self.name = name
        self.retry_in = retry_in
        super().__init__(f"Circuit '{name}' is open, retry in {retry_in:.1f}s")


class CircuitBreaker:
    """Async circuit breaker.

    Example:
        >>> breaker = CircuitBreaker("central_registry", trip_on=(httpx.TransportError,))
        >>> rows = await breaker.call(fetch_rows, "clientes")
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        trip_on: tuple[type[BaseException], ...] = (Exception,),
    ) -> None:
        """Initialize circuit breaker.

        Args:
            name: Name used in logs and errors.
            config: Thresholds; defaults when not provided.
            trip_on: Exception types counted as failures. Others pass
                through without affecting the circuit.
        """
        self.name = name
        self._config = config or CircuitBreakerConfig()
        self._trip_on = trip_on
        self._state = _BreakerState()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state.state

    @property
    def is_open(self) -> bool:
        return self._state.state == CircuitState.OPEN

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Execute ``func`` under circuit breaker protection.

        Raises:
            CircuitOpenError: If the circuit is open.
            Exception: Whatever ``func`` raised.
        """
        async with self._lock:
            if self._state.state == CircuitState.OPEN:
                if self._seconds_until_probe() > 0:
                    raise CircuitOpenError(self.name, self._seconds_until_probe())
                self._transition_to(CircuitState.HALF_OPEN)
                logger.info(f"Circuit '{self.name}' HALF_OPEN, probing recovery")

        try:
            result = await func(*args, **kwargs)
        except self._trip_on:
            await self._on_failure()
            raise
        await self._on_success()
        return result

    def reset(self) -> None:
        self._state = _BreakerState()
        logger.info(f"Circuit '{self.name}' reset to CLOSED")

    async def _on_success(self) -> None:
        async with self._lock:
            if self._state.state == CircuitState.HALF_OPEN:
                self._state.success_count += 1
                if self._state.success_count >= self._config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
                    logger.info(f"Circuit '{self.name}' CLOSED (service recovered)")
            else:
                self._state.failure_count = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self._state.failure_count += 1
            if self._state.state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning(f"Circuit '{self.name}' OPEN again (failure during recovery)")
            elif self._state.failure_count >= self._config.failure_threshold:
                self._open()
                logger.warning(f"Circuit '{self.name}' OPEN after {self._state.failure_count} failures")

    def _open(self) -> None:
        self._transition_to(CircuitState.OPEN)
        self._state.opened_at = time.monotonic()

    def _transition_to(self, new_state: CircuitState) -> None:
        self._state.state = new_state
        self._state.last_state_change = time.monotonic()
        if new_state == CircuitState.HALF_OPEN:
            self._state.success_count = 0
        elif new_state == CircuitState.CLOSED:
            self._state.failure_count = 0
            self._state.success_count = 0

    def _seconds_until_probe(self) -> float:
        elapsed = time.monotonic() - self._state.opened_at
        return max(0.0, self._config.recovery_timeout - elapsed)
