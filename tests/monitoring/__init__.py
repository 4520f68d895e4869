"""Tests for monitoring module."""


def test_monitoring_imports():
    """Test that monitoring module can be imported."""
    from imagestudio.monitoring import VisionMetrics, MetricsSnapshot

    assert VisionMetrics is not None
    assert MetricsSnapshot is not None
