"""
Circuit breaker for the response generator
"""

import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from loguru import logger

from src.models.internal import CircuitBreakerState


class CircuitState(Enum):
    """Circuit breaker states"""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failures detected, rejecting calls
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreakerOpenError(Exception):
    """Raised when circuit breaker is open and rejecting calls"""


class CircuitBreaker:
    """
    Stops calling a failing provider for `reset_timeout` seconds after
    `failure_threshold` consecutive failures, then lets one trial call through.
    """

    def __init__(self, name: str, failure_threshold: int = 5, reset_timeout: float = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

        self.failure_count = 0
        self.last_failure_time: float | None = None
        self.state = CircuitState.CLOSED

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Execute an async function with circuit breaker protection

        Raises:
            CircuitBreakerOpenError: If circuit is open
            Exception: If function fails
        """
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self.state = CircuitState.HALF_OPEN
                logger.info(f"[{self.name}] Circuit breaker entering HALF_OPEN state")
            else:
                raise CircuitBreakerOpenError(f"Circuit breaker '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise
        else:
            self._on_success()
            return result

    def _on_success(self):
        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"[{self.name}] Circuit breaker entering CLOSED state (recovered)")
            self.state = CircuitState.CLOSED

        self.failure_count = 0

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN or (
            self.failure_count >= self.failure_threshold and self.state != CircuitState.OPEN
        ):
            logger.warning(f"[{self.name}] Circuit breaker entering OPEN state (failures: {self.failure_count})")
            self.state = CircuitState.OPEN

    def _should_attempt_reset(self) -> bool:
        if self.last_failure_time is None:
            return True

        return (time.time() - self.last_failure_time) >= self.reset_timeout

    def get_state(self) -> CircuitBreakerState:
        """Get current circuit breaker state"""
        return CircuitBreakerState(
            state=self.state.value, failure_count=self.failure_count, last_failure_time=self.last_failure_time
        )


llm_circuit_breaker = CircuitBreaker("llm", failure_threshold=5, reset_timeout=60)
