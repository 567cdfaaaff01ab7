"""Unit tests for the circuit breaker state machine."""

from __future__ import annotations

import pytest

from shipnorth.infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
    HALF_OPEN_SUCCESS_THRESHOLD,
)


class UpstreamError(Exception):
    pass


async def succeed() -> str:
    return "ok"


async def fail() -> str:
    raise UpstreamError("boom")


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker(
        CircuitBreakerConfig(name="test-upstream", failure_threshold=3, reset_timeout_ms=1000),
        clock=clock,
    )


async def trip(breaker: CircuitBreaker) -> None:
    for _ in range(breaker.config.failure_threshold):
        with pytest.raises(UpstreamError):
            await breaker.execute(fail)


class TestClosedState:
    @pytest.mark.asyncio
    async def test_passes_results_through(self, breaker: CircuitBreaker) -> None:
        assert await breaker.execute(succeed) == "ok"
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_errors_propagate_unchanged(self, breaker: CircuitBreaker) -> None:
        with pytest.raises(UpstreamError, match="boom"):
            await breaker.execute(fail)
        assert breaker.failure_count == 1
        assert breaker.last_failure_time is not None

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker: CircuitBreaker) -> None:
        for _ in range(2):
            with pytest.raises(UpstreamError):
                await breaker.execute(fail)
        await breaker.execute(succeed)
        assert breaker.failure_count == 0
        with pytest.raises(UpstreamError):
            await breaker.execute(fail)
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_trips_at_threshold(self, breaker: CircuitBreaker, clock) -> None:
        await trip(breaker)
        assert breaker.state is CircuitState.OPEN
        status = breaker.get_status()
        assert status.failure_count == 3
        assert status.next_attempt_time is not None
        assert (status.next_attempt_time - clock()).total_seconds() == 1.0


class TestOpenState:
    @pytest.mark.asyncio
    async def test_rejects_without_calling(self, breaker: CircuitBreaker) -> None:
        await trip(breaker)
        calls = 0

        async def counted() -> str:
            nonlocal calls
            calls += 1
            return "ok"

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.execute(counted)
        assert calls == 0
        assert exc_info.value.breaker_name == "test-upstream"
        assert exc_info.value.retry_after_seconds == 1.0
        assert str(exc_info.value) == "Circuit breaker test-upstream is OPEN"

    @pytest.mark.asyncio
    async def test_rejections_are_not_failures(self, breaker: CircuitBreaker) -> None:
        await trip(breaker)
        for _ in range(5):
            with pytest.raises(CircuitOpenError):
                await breaker.execute(succeed)
        assert breaker.failure_count == 3

    @pytest.mark.asyncio
    async def test_still_open_just_before_timeout(self, breaker: CircuitBreaker, clock) -> None:
        await trip(breaker)
        clock.advance(999)
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeed)


class TestHalfOpenState:
    @pytest.mark.asyncio
    async def test_recovery_scenario(self, breaker: CircuitBreaker, clock) -> None:
        await trip(breaker)
        clock.advance(1000)

        assert await breaker.execute(succeed) == "ok"
        assert breaker.state is CircuitState.HALF_OPEN
        assert breaker.success_count == 1

        for _ in range(HALF_OPEN_SUCCESS_THRESHOLD - 1):
            await breaker.execute(succeed)
        assert breaker.state is CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.success_count == 0

    @pytest.mark.asyncio
    async def test_first_call_after_timeout_runs_operation_once(self, breaker: CircuitBreaker, clock) -> None:
        await trip(breaker)
        calls = 0

        async def counted() -> str:
            nonlocal calls
            calls += 1
            return "ok"

        with pytest.raises(CircuitOpenError):
            await breaker.execute(counted)
        assert calls == 0

        clock.advance(1000)
        assert await breaker.execute(counted) == "ok"
        assert calls == 1
        assert breaker.state is CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_failure_reopens(self, breaker: CircuitBreaker, clock) -> None:
        await trip(breaker)
        clock.advance(1000)
        await breaker.execute(succeed)

        with pytest.raises(UpstreamError):
            await breaker.execute(fail)
        assert breaker.state is CircuitState.OPEN
        assert breaker.next_attempt_time == clock() + breaker.config.reset_timeout

    @pytest.mark.asyncio
    async def test_success_count_restarts_each_half_open(self, breaker: CircuitBreaker, clock) -> None:
        await trip(breaker)
        clock.advance(1000)
        await breaker.execute(succeed)
        await breaker.execute(succeed)
        with pytest.raises(UpstreamError):
            await breaker.execute(fail)

        clock.advance(1000)
        await breaker.execute(succeed)
        assert breaker.state is CircuitState.HALF_OPEN
        assert breaker.success_count == 1


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_closes_and_clears(self, breaker: CircuitBreaker) -> None:
        await trip(breaker)
        breaker.reset()
        status = breaker.get_status()
        assert status.state is CircuitState.CLOSED
        assert status.failure_count == 0
        assert status.last_failure_time is None
        assert status.next_attempt_time is None
        assert await breaker.execute(succeed) == "ok"


class TestConfig:
    def test_threshold_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            CircuitBreakerConfig(name="x", failure_threshold=0)

    def test_defaults(self) -> None:
        config = CircuitBreakerConfig(name="x")
        assert config.failure_threshold == 5
        assert config.reset_timeout.total_seconds() == 60
