"""Retry orchestration for vision API calls.

Provides bounded retry around a single outbound call with:
- Error classification driving the per-attempt decision
- Exponential or linear backoff with jitter
- Token-budget degradation for token-limit failures
- A single typed error on exhaustion
"""

import asyncio
import functools
import logging
import math
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import (
    ErrorKind,
    FallbackStrategy,
    VisionAPIError,
    classify_error,
    extract_error_details,
    get_retry_after,
    is_retryable_kind,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Degradation never shrinks the token budget below this floor
MIN_DEGRADED_TOKENS = 200
DEGRADATION_FACTOR = 0.75


class BackoffStrategy(str, Enum):
    """Delay growth between attempts."""

    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    max_retries: int = 3
    backoff: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    allow_degradation: bool = False
    max_tokens: Optional[int] = None
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 30.0  # Maximum delay in seconds
    linear_step: float = 1.0  # Step for linear backoff
    fallback_step: float = 0.5  # Step for unclassified failures
    jitter: float = 0.1  # Random jitter factor (0-1)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if not isinstance(self.backoff, BackoffStrategy):
            object.__setattr__(self, "backoff", BackoffStrategy(self.backoff))

    def with_max_tokens(self, max_tokens: Optional[int]) -> "RetryPolicy":
        """Return a copy with a different token budget."""
        return replace(self, max_tokens=max_tokens)


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> float:
    """Calculate exponential backoff delay for a retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        base_delay: Delay for the first retry in seconds
        max_delay: Upper bound in seconds

    Returns:
        Delay in seconds
    """
    return min(base_delay * (2**attempt), max_delay)


def linear_delay(attempt: int, step: float = 1.0) -> float:
    """Calculate linear backoff delay for a retry attempt."""
    return (attempt + 1) * step


def apply_jitter(delay: float, jitter: float = 0.1, upward_only: bool = False) -> float:
    """Spread a delay by +/- ``jitter`` of its value.

    With ``upward_only`` the delay is only ever lengthened, for waits a
    server has mandated.
    """
    if jitter <= 0 or delay <= 0:
        return delay
    jitter_range = delay * jitter
    if upward_only:
        return delay + random.uniform(0, jitter_range)
    return max(0.0, delay + random.uniform(-jitter_range, jitter_range))


def _backoff_delay(attempt: int, policy: RetryPolicy, step: float) -> float:
    if policy.backoff == BackoffStrategy.EXPONENTIAL:
        return calculate_backoff(attempt, policy.base_delay, policy.max_delay)
    return linear_delay(attempt, step)


async def _wait(delay: float, policy: RetryPolicy, upward_only: bool = False) -> None:
    await asyncio.sleep(apply_jitter(delay, policy.jitter, upward_only))


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    context: Optional[str] = None,
    on_degrade: Optional[Callable[[int], None]] = None,
) -> T:
    """Invoke ``func`` with classified, bounded retries.

    At most ``policy.max_retries + 1`` attempts are made. Content-filter and
    validation failures are terminal on first sight. Token-limit failures
    shrink ``max_tokens`` by 25% when degradation is allowed and report the
    new budget through ``on_degrade`` so the caller can rebuild its request.

    Args:
        func: No-argument coroutine function performing the outbound call
        policy: Retry policy (defaults to ``RetryPolicy()``)
        context: Label used in log lines
        on_degrade: Callback receiving the reduced token budget

    Returns:
        Result of the first successful attempt

    Raises:
        VisionAPIError: On a terminal failure or when retries are exhausted
    """
    policy = policy or RetryPolicy()
    label = context or "Vision API"
    max_tokens = policy.max_tokens
    last_error: Optional[BaseException] = None
    attempts = 0

    for attempt in range(policy.max_retries + 1):
        attempts = attempt + 1
        try:
            return await func()
        except Exception as e:
            last_error = e
            kind = classify_error(e)
            will_retry = attempt < policy.max_retries

            logger.warning(
                f"{label} attempt {attempts}/{policy.max_retries + 1} failed "
                f"[{kind.value}] {e} (will retry: {will_retry})"
            )

            if not will_retry:
                break

            if kind == ErrorKind.RATE_LIMIT:
                retry_after = get_retry_after(e)
                if retry_after is not None:
                    await _wait(retry_after, policy, upward_only=True)
                else:
                    await _wait(
                        calculate_backoff(attempt, policy.base_delay, policy.max_delay), policy
                    )

            elif kind == ErrorKind.CONTENT_FILTERED:
                raise VisionAPIError(
                    "Content filtered by safety system",
                    ErrorKind.CONTENT_FILTERED,
                    False,
                    FallbackStrategy.USE_GENERIC_DESCRIPTION,
                    attempts=attempts,
                ) from e

            elif kind == ErrorKind.TOKEN_LIMIT:
                if (
                    policy.allow_degradation
                    and max_tokens is not None
                    and max_tokens > MIN_DEGRADED_TOKENS
                ):
                    max_tokens = math.floor(max_tokens * DEGRADATION_FACTOR)
                    logger.warning(f"{label}: reducing max tokens to {max_tokens} and retrying")
                    if on_degrade:
                        on_degrade(max_tokens)
                # No wait: retry straight away, degraded or not

            elif kind == ErrorKind.NETWORK:
                await _wait(_backoff_delay(attempt, policy, policy.linear_step), policy)

            elif kind == ErrorKind.VALIDATION:
                _, message, _ = extract_error_details(e)
                raise VisionAPIError(
                    f"Validation error: {message}",
                    ErrorKind.VALIDATION,
                    False,
                    attempts=attempts,
                ) from e

            else:
                await _wait(_backoff_delay(attempt, policy, policy.fallback_step), policy)

    if last_error is None:
        raise VisionAPIError("Unknown error occurred", ErrorKind.NETWORK, True, attempts=attempts)

    final_kind = classify_error(last_error)
    _, message, _ = extract_error_details(last_error)
    logger.error(f"{label}: all {attempts} attempts failed [{final_kind.value}]")
    raise VisionAPIError(
        message or f"{label} call failed",
        final_kind,
        is_retryable_kind(final_kind),
        attempts=attempts,
    ) from last_error


def retry_with_policy(
    policy: Optional[RetryPolicy] = None,
    context: Optional[str] = None,
):
    """Decorator applying ``call_with_retry`` to an async function.

    Usage:
        @retry_with_policy(RetryPolicy(max_retries=2))
        async def describe_image():
            ...
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            return await call_with_retry(
                lambda: func(*args, **kwargs),
                policy,
                context=context or func.__name__,
            )

        return wrapper

    return decorator
