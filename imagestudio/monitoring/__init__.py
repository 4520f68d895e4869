"""Monitoring module for Image Studio.

This module provides:
- Process-wide request and cache metrics
- Prometheus text rendering of those metrics
"""

from .metrics import MetricsSnapshot, VisionMetrics

__all__ = ["VisionMetrics", "MetricsSnapshot"]
