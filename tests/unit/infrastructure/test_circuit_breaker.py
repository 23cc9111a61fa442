"""Tests for the circuit breaker guarding the external stores."""

import pytest

from visioncare.domains.clinic.infrastructure.external import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
)


class ServiceDown(Exception):
    pass


class NotAFailure(Exception):
    pass


async def _fail():
    raise ServiceDown("down")


async def _ok():
    return "ok"


async def _reject():
    raise NotAFailure("409")


@pytest.fixture
def breaker() -> CircuitBreaker:
    return CircuitBreaker(
        "central_registry",
        CircuitBreakerConfig(failure_threshold=2, recovery_timeout=0.0, success_threshold=1),
        trip_on=(ServiceDown,),
    )


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_opens_after_consecutive_failures(self) -> None:
        breaker = CircuitBreaker(
            "schedule_gateway",
            CircuitBreakerConfig(failure_threshold=2, recovery_timeout=60.0),
            trip_on=(ServiceDown,),
        )

        for _ in range(2):
            with pytest.raises(ServiceDown):
                await breaker.call(_fail)

        assert breaker.is_open
        with pytest.raises(CircuitOpenError):
            await breaker.call(_ok)

    @pytest.mark.asyncio
    async def test_other_exceptions_do_not_count(self, breaker) -> None:
        for _ in range(3):
            with pytest.raises(NotAFailure):
                await breaker.call(_reject)

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker) -> None:
        with pytest.raises(ServiceDown):
            await breaker.call(_fail)
        assert await breaker.call(_ok) == "ok"
        with pytest.raises(ServiceDown):
            await breaker.call(_fail)

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_probe_closes_on_success(self, breaker) -> None:
        for _ in range(2):
            with pytest.raises(ServiceDown):
                await breaker.call(_fail)
        assert breaker.is_open

        # recovery_timeout is zero: the next call is the probe
        assert await breaker.call(_ok) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_probe_failure_reopens(self, breaker) -> None:
        for _ in range(2):
            with pytest.raises(ServiceDown):
                await breaker.call(_fail)

        with pytest.raises(ServiceDown):
            await breaker.call(_fail)
        assert breaker.is_open

    def test_reset(self, breaker) -> None:
        breaker._state.state = CircuitState.OPEN
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
