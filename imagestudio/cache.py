"""In-memory TTL cache for vision results.

Values are deep-copied on the way in and out, so callers can never mutate
cached state through a reference they hold.
"""

import base64
import copy
import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

# Option fields that change per request without changing the analysis
VOLATILE_OPTION_FIELDS = frozenset({"timestamp", "force", "request_id"})

EVICTION_FRACTION = 0.2


@dataclass
class CacheEntry:
    """A cached value with its insertion time and lifetime (seconds)."""

    value: Any
    inserted_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl


class TTLCache:
    """Bounded key/value store with per-entry expiry.

    Eviction at capacity first purges expired entries, then drops the oldest
    20% by insertion time.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            max_entries: Capacity bound
            default_ttl: Lifetime in seconds used when ``set`` gets none
            clock: Monotonic time source in seconds
        """
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        """Store a snapshot of ``value`` under ``key``.

        Args:
            key: Cache key
            value: Value to cache (deep-copied)
            ttl: Lifetime in seconds
        """
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._evict()

        self._entries[key] = CacheEntry(
            value=copy.deepcopy(value),
            inserted_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def get(self, key: Hashable) -> Optional[Any]:
        """Get a copy of the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None

        return copy.deepcopy(entry.value)

    def has(self, key: Hashable) -> bool:
        """Whether a live entry exists, even one holding None."""
        entry = self._entries.get(key)
        if entry is None:
            return False

        if entry.is_expired(self._clock()):
            del self._entries[key]
            return False

        return True

    def delete(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        """Number of live entries (expired ones are swept first)."""
        self._purge_expired()
        return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: Hashable) -> bool:
        return self.has(key)

    def _purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict(self) -> None:
        purged = self._purge_expired()

        if len(self._entries) >= self.max_entries:
            to_remove = max(1, math.floor(self.max_entries * EVICTION_FRACTION))
            oldest = sorted(self._entries.items(), key=lambda item: item[1].inserted_at)
            for key, _ in oldest[:to_remove]:
                del self._entries[key]
            logger.debug(f"Cache evicted {to_remove} oldest entries ({purged} expired purged)")


def generate_cache_key(
    image_ids: Sequence[str],
    options: Optional[Mapping[str, Any]] = None,
    namespace: str = "vision",
) -> str:
    """Derive an order-independent cache key for a vision request.

    Args:
        image_ids: Images the request is about (order does not matter)
        options: Request options; volatile fields are ignored
        namespace: Key prefix

    Returns:
        Opaque key of the form ``"<namespace>:<base64>"``
    """
    stable_options = {
        key: value
        for key, value in (options or {}).items()
        if key not in VOLATILE_OPTION_FIELDS and value is not None
    }
    key_data = {
        "imageIds": sorted(image_ids),
        "options": stable_options,
    }
    payload = json.dumps(key_data, sort_keys=True, separators=(",", ":"), default=str)
    encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
    return f"{namespace}:{encoded}"
