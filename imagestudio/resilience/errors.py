"""Error taxonomy and classification for vision API calls.

Every outbound failure is mapped onto one of a fixed set of error kinds.
The kind decides whether the retry layer waits, degrades, or gives up, and
the terminal ``VisionAPIError`` carries it to callers so they can substitute
a fallback payload instead of surfacing a raw failure.
"""

import logging
import math
from enum import Enum
from typing import Any, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Classified failure kinds."""

    RATE_LIMIT = "RATE_LIMIT"
    CONTENT_FILTERED = "CONTENT_FILTERED"
    TOKEN_LIMIT = "TOKEN_LIMIT"
    NETWORK = "NETWORK"
    VALIDATION = "VALIDATION"
    MODERATION = "MODERATION"


class FallbackStrategy(str, Enum):
    """Hints for building a degraded-but-valid response."""

    USE_GENERIC_DESCRIPTION = "USE_GENERIC_DESCRIPTION"
    REDUCE_DETAIL = "REDUCE_DETAIL"
    RETRY_WITH_DIFFERENT_PARAMS = "RETRY_WITH_DIFFERENT_PARAMS"


class VisionAPIError(Exception):
    """Terminal, typed failure of a vision API operation."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        retryable: bool,
        fallback_strategy: Optional[FallbackStrategy] = None,
        attempts: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.retryable = retryable
        self.fallback_strategy = fallback_strategy
        self.attempts = attempts

    def __repr__(self) -> str:
        return (
            f"VisionAPIError(kind={self.kind.value}, retryable={self.retryable}, "
            f"message={self.message!r})"
        )


class CircuitOpenError(VisionAPIError):
    """Raised when a circuit breaker rejects a call."""

    def __init__(self, message: str = "Service temporarily unavailable (circuit breaker open)"):
        super().__init__(message, ErrorKind.NETWORK, retryable=True)


class APIRequestError(Exception):
    """Raw failure of an outbound HTTP call.

    Carries just enough information for ``classify_error``.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.headers = dict(headers) if headers else {}


def extract_error_details(
    error: BaseException,
) -> tuple[Optional[int], str, Mapping[str, str]]:
    """Pull status code, message and headers out of an arbitrary exception.

    Args:
        error: Exception raised by an outbound call

    Returns:
        Tuple of (status, message, headers)
    """
    status: Optional[int] = None
    headers: Mapping[str, str] = {}

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        headers = error.response.headers
    else:
        for attr in ("status", "status_code"):
            value = getattr(error, attr, None)
            if isinstance(value, int):
                status = value
                break
        raw_headers = getattr(error, "headers", None)
        if isinstance(raw_headers, Mapping):
            headers = raw_headers

    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        message = str(error)

    return status, message, headers


def classify_error(error: BaseException) -> ErrorKind:
    """Map a raw failure to an ErrorKind.

    Rules are evaluated in priority order, first match wins. Never raises;
    anything unrecognised is treated as a network failure.

    Args:
        error: Exception raised by an outbound call

    Returns:
        The classified error kind
    """
    if isinstance(error, VisionAPIError):
        return error.kind

    status, message, _ = extract_error_details(error)
    message = message.lower()

    if status == 429 or "rate limit" in message or "quota" in message:
        return ErrorKind.RATE_LIMIT

    if status == 400 and ("content_filter" in message or "safety" in message):
        return ErrorKind.CONTENT_FILTERED

    if "token" in message and ("limit" in message or "length" in message):
        return ErrorKind.TOKEN_LIMIT

    if (status is not None and status >= 500) or any(
        word in message for word in ("network", "timeout", "connect")
    ):
        return ErrorKind.NETWORK

    if status == 400:
        return ErrorKind.VALIDATION

    return ErrorKind.NETWORK


def get_retry_after(error: BaseException) -> Optional[float]:
    """Read a Retry-After header (seconds) from an exception, if any."""
    _, _, headers = extract_error_details(error)
    if not headers:
        return None

    value: Any = headers.get("retry-after")
    if value is None:
        value = headers.get("Retry-After")
    if value is None:
        return None

    try:
        seconds = float(str(value).strip())
    except ValueError:
        logger.debug(f"Ignoring unparseable retry-after header: {value!r}")
        return None

    if not math.isfinite(seconds):
        return None

    return max(seconds, 0.0)


def is_retryable_kind(kind: ErrorKind) -> bool:
    """Whether a fresh retry budget could help for this kind."""
    return kind in (ErrorKind.RATE_LIMIT, ErrorKind.NETWORK)
