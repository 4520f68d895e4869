"""Resilience layer for Image Studio vision calls.

This module provides:
- Error classification into a fixed taxonomy
- Retry with classified backoff and token degradation
- A circuit breaker around the vision API
- Timeout wrappers
- Fallback payloads
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from .errors import (
    APIRequestError,
    CircuitOpenError,
    ErrorKind,
    FallbackStrategy,
    VisionAPIError,
    classify_error,
)
from .fallback import create_fallback_response
from .retry import BackoffStrategy, RetryPolicy, calculate_backoff, call_with_retry
from .timeout import with_timeout

__all__ = [
    "ErrorKind",
    "FallbackStrategy",
    "VisionAPIError",
    "APIRequestError",
    "CircuitOpenError",
    "classify_error",
    "BackoffStrategy",
    "RetryPolicy",
    "calculate_backoff",
    "call_with_retry",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "with_timeout",
    "create_fallback_response",
]
