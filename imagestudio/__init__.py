"""Image Studio: resilient vision analysis for an AI media library."""

__version__ = "0.1.0"

from .cache import TTLCache, generate_cache_key
from .monitoring import VisionMetrics
from .resilience import (
    CircuitBreaker,
    ErrorKind,
    RetryPolicy,
    VisionAPIError,
    call_with_retry,
    classify_error,
)
from .vision import VisionRuntime, VisionService

__all__ = [
    "TTLCache",
    "generate_cache_key",
    "VisionMetrics",
    "CircuitBreaker",
    "ErrorKind",
    "RetryPolicy",
    "VisionAPIError",
    "call_with_retry",
    "classify_error",
    "VisionRuntime",
    "VisionService",
]
