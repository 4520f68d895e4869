"""Tests for the vision circuit breaker."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from imagestudio.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from imagestudio.resilience.errors import APIRequestError, CircuitOpenError, ErrorKind


def make_breaker(clock, threshold=3, reset_timeout=60.0, monitor_window=300.0):
    return CircuitBreaker(
        "test",
        CircuitBreakerConfig(
            failure_threshold=threshold,
            reset_timeout=reset_timeout,
            monitor_window=monitor_window,
        ),
        clock=clock,
    )


async def trip(breaker, times):
    failing = AsyncMock(side_effect=APIRequestError("Service unavailable", status=503))
    for _ in range(times):
        with pytest.raises(APIRequestError):
            await breaker.call(failing)


class TestCircuitBreakerConfig:
    """Test default configuration."""

    def test_defaults(self):
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.reset_timeout == 60.0
        assert config.monitor_window == 300.0


class TestCircuitBreakerStates:
    """Test circuit breaker state transitions."""

    def test_initial_state_is_closed(self, clock):
        """Test circuit starts in CLOSED state."""
        cb = make_breaker(clock)
        assert cb.state == CircuitState.CLOSED
        assert cb.get_state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_after_failure_threshold(self, clock):
        """Test circuit opens after reaching failure threshold."""
        cb = make_breaker(clock, threshold=3)

        await trip(cb, 2)
        assert cb.state == CircuitState.CLOSED

        await trip(cb, 1)
        assert cb.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_rejects_without_calling(self, clock):
        """Test an open circuit fails fast without invoking the function."""
        cb = make_breaker(clock, threshold=2)
        await trip(cb, 2)

        func = AsyncMock(return_value="ok")
        with pytest.raises(CircuitOpenError) as exc_info:
            await cb.call(func)

        func.assert_not_awaited()
        assert exc_info.value.retryable is True
        assert exc_info.value.kind == ErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_stays_open_until_timeout(self, clock):
        """Test the circuit keeps rejecting before reset_timeout elapses."""
        cb = make_breaker(clock, threshold=1, reset_timeout=60.0)
        await trip(cb, 1)

        clock.advance(59.9)
        with pytest.raises(CircuitOpenError):
            await cb.call(AsyncMock(return_value="ok"))

    @pytest.mark.asyncio
    async def test_half_open_after_reset_timeout(self, clock):
        """Test circuit enters HALF_OPEN after reset timeout."""
        cb = make_breaker(clock, threshold=1, reset_timeout=60.0)
        await trip(cb, 1)
        assert cb.state == CircuitState.OPEN

        clock.advance(60.0)
        assert cb.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_successful_probe_closes(self, clock):
        """Test a successful probe closes the circuit and resets failures."""
        cb = make_breaker(clock, threshold=2)
        await trip(cb, 2)
        clock.advance(61)

        assert await cb.call(AsyncMock(return_value="ok")) == "ok"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    @pytest.mark.asyncio
    async def test_failed_probe_reopens(self, clock):
        """Test a failed probe reopens with a fresh timeout."""
        cb = make_breaker(clock, threshold=2, reset_timeout=60.0)
        await trip(cb, 2)
        clock.advance(61)

        await trip(cb, 1)
        assert cb.state == CircuitState.OPEN

        clock.advance(30)
        with pytest.raises(CircuitOpenError):
            await cb.call(AsyncMock(return_value="ok"))

        clock.advance(31)
        assert cb.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_single_probe_in_half_open(self, clock):
        """Test concurrent callers are rejected while a probe is running."""
        cb = make_breaker(clock, threshold=1)
        await trip(cb, 1)
        clock.advance(61)

        release = asyncio.Event()

        async def slow_probe():
            await release.wait()
            return "probe"

        probe = asyncio.create_task(cb.call(slow_probe))
        await asyncio.sleep(0)

        with pytest.raises(CircuitOpenError):
            await cb.call(AsyncMock(return_value="ok"))

        release.set()
        assert await probe == "probe"
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_cancelled_probe_reopens(self, clock):
        """Test a cancelled probe reopens the circuit instead of wedging it."""
        cb = make_breaker(clock, threshold=1, reset_timeout=60.0)
        await trip(cb, 1)
        clock.advance(61)

        async def hang():
            await asyncio.Event().wait()

        probe = asyncio.create_task(cb.call(hang))
        await asyncio.sleep(0)
        probe.cancel()
        with pytest.raises(asyncio.CancelledError):
            await probe

        assert cb.state == CircuitState.OPEN

        clock.advance(60)
        func = AsyncMock(return_value="ok")
        assert await cb.call(func) == "ok"
        func.assert_awaited_once()
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_cancelled_call_in_closed_not_counted(self, clock):
        """Test cancellation outside a probe does not count as a failure."""
        cb = make_breaker(clock, threshold=1)

        async def hang():
            await asyncio.Event().wait()

        task = asyncio.create_task(cb.call(hang))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, clock):
        """Test success in CLOSED resets the consecutive counter."""
        cb = make_breaker(clock, threshold=3)
        await trip(cb, 2)
        await cb.call(AsyncMock(return_value="ok"))
        await trip(cb, 2)
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_old_failures_forgotten_after_monitor_window(self, clock):
        """Test failures outside the monitoring window stop counting."""
        cb = make_breaker(clock, threshold=3, monitor_window=300.0)
        await trip(cb, 2)

        clock.advance(301)
        await trip(cb, 1)
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 1

    @pytest.mark.asyncio
    async def test_propagates_original_error(self, clock):
        """Test the protected function's error passes through unchanged."""
        cb = make_breaker(clock)
        error = APIRequestError("Invalid request", status=400)

        with pytest.raises(APIRequestError) as exc_info:
            await cb.call(AsyncMock(side_effect=error))

        assert exc_info.value is error


class TestCircuitBreakerHelpers:
    """Test reset, status and decorator."""

    @pytest.mark.asyncio
    async def test_reset(self, clock):
        cb = make_breaker(clock, threshold=1)
        await trip(cb, 1)
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    @pytest.mark.asyncio
    async def test_get_status(self, clock):
        cb = make_breaker(clock, threshold=1)
        await trip(cb, 1)
        status = cb.get_status()
        assert status["name"] == "test"
        assert status["state"] == "OPEN"
        assert status["failure_count"] == 1

    @pytest.mark.asyncio
    async def test_protect_decorator(self, clock):
        cb = make_breaker(clock, threshold=1)

        @cb.protect
        async def describe(value):
            if value < 0:
                raise APIRequestError("Service unavailable", status=503)
            return value

        assert await describe(1) == 1
        with pytest.raises(APIRequestError):
            await describe(-1)
        with pytest.raises(CircuitOpenError):
            await describe(1)
