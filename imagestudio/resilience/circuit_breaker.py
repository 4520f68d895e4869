"""Circuit breaker for the vision API.

Provides a three-state guard around a fallible async call:
- CLOSED (normal), OPEN (rejecting), HALF_OPEN (single recovery probe)
- Consecutive-failure threshold with a monitoring window
- Lazy recovery check on the next call after the reset timeout
"""

import functools
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Service failing, reject requests
    HALF_OPEN = "HALF_OPEN"  # Testing if service recovered


@dataclass
class CircuitBreakerConfig:
    """Configuration for the circuit breaker."""

    failure_threshold: int = 5  # Consecutive failures before opening
    reset_timeout: float = 60.0  # Seconds before trying half-open
    monitor_window: float = 300.0  # Failures older than this are forgotten


class CircuitBreaker:
    """Circuit breaker protecting calls to an external service.

    Usage:
        breaker = CircuitBreaker("vision_api")
        result = await breaker.call(lambda: client.chat_completion(...))

        # Or as a decorator:
        @breaker.protect
        async def describe():
            ...
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            name: Service name for logging
            config: Circuit breaker configuration
            clock: Monotonic time source in seconds
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._probe_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current state, checking for the OPEN -> HALF_OPEN transition."""
        with self._lock:
            self._check_state_transition()
            return self._state

    def get_state(self) -> CircuitState:
        """Get current state."""
        return self.state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (blocking requests)."""
        return self.state == CircuitState.OPEN

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run ``func`` through the breaker.

        Args:
            func: No-argument coroutine function to protect

        Returns:
            Result of ``func``

        Raises:
            CircuitOpenError: If the circuit is open or a probe is running
            Exception: Whatever ``func`` raised, unchanged
        """
        probing = self._acquire()

        try:
            result = await func()
        except Exception:
            self.record_failure()
            raise
        except BaseException:
            # Cancelled probe counts as failed so HALF_OPEN cannot wedge
            if probing:
                self.record_failure()
            raise

        self.record_success()
        return result

    def _acquire(self) -> bool:
        """Admit a call, returning True when it is the HALF_OPEN probe."""
        with self._lock:
            self._check_state_transition()

            if self._state == CircuitState.OPEN:
                raise CircuitOpenError()

            if self._state == CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    raise CircuitOpenError(
                        "Service temporarily unavailable (circuit breaker probing)"
                    )
                self._probe_in_flight = True
                return True

            return False

    def record_success(self) -> None:
        """Record a successful request."""
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to_closed()
            self._failure_count = 0
            self._probe_in_flight = False

    def record_failure(self) -> None:
        """Record a failed request."""
        with self._lock:
            now = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = False
                self._last_failure_time = now
                self._failure_count += 1
                self._transition_to_open()
                return

            if (
                self._last_failure_time is not None
                and now - self._last_failure_time > self.config.monitor_window
            ):
                self._failure_count = 0

            self._failure_count += 1
            self._last_failure_time = now

            if self._state == CircuitState.CLOSED:
                if self._failure_count >= self.config.failure_threshold:
                    self._transition_to_open()

    def _check_state_transition(self) -> None:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            elapsed = self._clock() - self._last_failure_time
            if elapsed >= self.config.reset_timeout:
                self._transition_to_half_open()

    def _transition_to_open(self) -> None:
        logger.warning(f"Circuit breaker {self.name} OPENED after {self._failure_count} failures")
        self._state = CircuitState.OPEN

    def _transition_to_half_open(self) -> None:
        logger.info(f"Circuit breaker {self.name} entering HALF_OPEN for recovery test")
        self._state = CircuitState.HALF_OPEN
        self._probe_in_flight = False

    def _transition_to_closed(self) -> None:
        logger.info(f"Circuit breaker {self.name} CLOSED - service recovered")
        self._state = CircuitState.CLOSED

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._last_failure_time = None
            self._probe_in_flight = False
        logger.info(f"Circuit breaker {self.name} manually reset")

    def protect(self, func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        """Decorator to protect an async function with the breaker."""

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            return await self.call(lambda: func(*args, **kwargs))

        return wrapper

    def get_status(self) -> dict[str, Any]:
        """Get circuit breaker status.

        Returns:
            Status dictionary
        """
        state = self.state
        with self._lock:
            return {
                "name": self.name,
                "state": state.value,
                "failure_count": self._failure_count,
                "last_failure": self._last_failure_time,
                "failure_threshold": self.config.failure_threshold,
                "reset_timeout": self.config.reset_timeout,
            }
