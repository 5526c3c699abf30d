"""
Unit tests for the circuit breaker
"""
from unittest.mock import AsyncMock, patch

import pytest

from src.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState


@pytest.mark.asyncio
async def test_opens_after_threshold():
    breaker = CircuitBreaker("test", failure_threshold=2, reset_timeout=60)
    failing = AsyncMock(side_effect=RuntimeError("boom"))

    for _ in range(2):
        with pytest.raises(RuntimeError):
            await breaker.call_async(failing)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerOpenError):
        await breaker.call_async(failing)
    assert failing.await_count == 2


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    breaker = CircuitBreaker("test", failure_threshold=3)

    with pytest.raises(RuntimeError):
        await breaker.call_async(AsyncMock(side_effect=RuntimeError("boom")))
    assert await breaker.call_async(AsyncMock(return_value="ok")) == "ok"

    assert breaker.get_state().failure_count == 0
    assert breaker.get_state().state == "closed"


@pytest.mark.asyncio
async def test_half_open_trial_closes_on_success():
    breaker = CircuitBreaker("test", failure_threshold=1, reset_timeout=30)

    with patch("src.core.circuit_breaker.time.time", return_value=1000.0):
        with pytest.raises(RuntimeError):
            await breaker.call_async(AsyncMock(side_effect=RuntimeError("boom")))
    assert breaker.state == CircuitState.OPEN

    with patch("src.core.circuit_breaker.time.time", return_value=1031.0):
        assert await breaker.call_async(AsyncMock(return_value="ok")) == "ok"

    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_trial_reopens_on_failure():
    breaker = CircuitBreaker("test", failure_threshold=1, reset_timeout=30)

    with patch("src.core.circuit_breaker.time.time", return_value=1000.0):
        with pytest.raises(RuntimeError):
            await breaker.call_async(AsyncMock(side_effect=RuntimeError("boom")))

    with patch("src.core.circuit_breaker.time.time", return_value=1031.0):
        with pytest.raises(RuntimeError):
            await breaker.call_async(AsyncMock(side_effect=RuntimeError("still down")))

    assert breaker.state == CircuitState.OPEN
