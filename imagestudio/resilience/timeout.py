"""Timeout wrapper for outbound vision calls.

The call is raced against a timer; if the timer wins the call is cancelled
and a NETWORK-classified, retryable error is raised so the retry layer
treats it like any other transient failure.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from .errors import ErrorKind, VisionAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Pre-configured timeouts (seconds)
VISION_TIMEOUT = 45.0
HEALTH_CHECK_TIMEOUT = 5.0


async def with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float = VISION_TIMEOUT,
    context: str = "Vision API call",
) -> T:
    """Await ``awaitable`` with a deadline.

    Args:
        awaitable: Coroutine or future to await
        timeout_seconds: Deadline in seconds
        context: Label used in the error message

    Returns:
        Result of ``awaitable``

    Raises:
        VisionAPIError: NETWORK kind, retryable, if the deadline passes
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        timeout_ms = int(timeout_seconds * 1000)
        logger.warning(f"{context} timed out after {timeout_ms}ms")
        raise VisionAPIError(
            f"{context} timed out after {timeout_ms}ms",
            ErrorKind.NETWORK,
            True,
        ) from None
