"""Request and cache metrics for the vision pipeline.

Tracks:
- Request counts: total, successful, failed, failures per error kind
- Cache hits and misses
- Running-average latency of successful requests

Snapshots can be rendered in Prometheus text format for scraping.
"""

import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from ..resilience.errors import ErrorKind

logger = logging.getLogger(__name__)

METRIC_PREFIX = "imagestudio_vision"


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of the aggregated counters."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    average_latency_ms: float = 0.0
    error_counts: dict[str, int] = field(default_factory=dict)
    success_rate: float = 0.0
    cache_hit_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class VisionMetrics:
    """Aggregates request outcomes for the lifetime of the process.

    Construct one instance at startup and share it; ``reset`` is the only way
    counters go back to zero.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._reset_state()

    def _reset_state(self) -> None:
        self._total = 0
        self._success = 0
        self._failure = 0
        self._cache_hits = 0
        self._cache_misses = 0
        self._average_latency = 0.0
        self._error_counts: dict[str, int] = {}

    def record_request(
        self,
        success: bool,
        latency_ms: float,
        kind: Optional[ErrorKind] = None,
    ) -> None:
        """Record the outcome of one request.

        Args:
            success: Whether the request succeeded
            latency_ms: End-to-end latency in milliseconds
            kind: Error kind for failed requests
        """
        with self._lock:
            self._total += 1

            if success:
                self._success += 1
                # Incremental mean over successful requests only
                self._average_latency += (latency_ms - self._average_latency) / self._success
            else:
                self._failure += 1
                if kind is not None:
                    key = kind.value if isinstance(kind, ErrorKind) else str(kind)
                    self._error_counts[key] = self._error_counts.get(key, 0) + 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self._cache_hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self._cache_misses += 1

    def get_metrics(self) -> MetricsSnapshot:
        """Get a snapshot including derived rates."""
        with self._lock:
            lookups = self._cache_hits + self._cache_misses
            return MetricsSnapshot(
                total_requests=self._total,
                successful_requests=self._success,
                failed_requests=self._failure,
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                average_latency_ms=self._average_latency,
                error_counts=dict(self._error_counts),
                success_rate=self._success / self._total if self._total > 0 else 0.0,
                cache_hit_rate=self._cache_hits / lookups if lookups > 0 else 0.0,
            )

    def reset(self) -> None:
        """Zero all counters."""
        with self._lock:
            self._reset_state()
        logger.info("Vision metrics reset")

    def to_prometheus(self) -> str:
        """Format the current snapshot as Prometheus text."""
        snapshot = self.get_metrics()
        lines = []

        def emit(name: str, kind: str, description: str, samples: list[tuple[str, Any]]):
            full_name = f"{METRIC_PREFIX}_{name}"
            lines.append(f"# HELP {full_name} {description}")
            lines.append(f"# TYPE {full_name} {kind}")
            for labels, value in samples:
                lines.append(f"{full_name}{labels} {value}")

        emit(
            "requests_total",
            "counter",
            "Total number of vision requests",
            [
                ('{status="success"}', snapshot.successful_requests),
                ('{status="failure"}', snapshot.failed_requests),
            ],
        )
        emit(
            "errors_total",
            "counter",
            "Failed vision requests by error kind",
            [(f'{{kind="{kind}"}}', count) for kind, count in sorted(snapshot.error_counts.items())],
        )
        emit(
            "cache_lookups_total",
            "counter",
            "Vision cache lookups",
            [
                ('{result="hit"}', snapshot.cache_hits),
                ('{result="miss"}', snapshot.cache_misses),
            ],
        )
        emit(
            "average_latency_ms",
            "gauge",
            "Running average latency of successful requests",
            [("", snapshot.average_latency_ms)],
        )
        emit("success_rate", "gauge", "Share of successful requests", [("", snapshot.success_rate)])
        emit("cache_hit_rate", "gauge", "Share of cache lookups that hit", [("", snapshot.cache_hit_rate)])

        return "\n".join(lines)
