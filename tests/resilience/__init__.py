"""Tests for resilience module."""


def test_resilience_imports():
    """Test that resilience module can be imported."""
    from imagestudio.resilience import (
        call_with_retry,
        RetryPolicy,
        CircuitBreaker,
        CircuitState,
        classify_error,
        with_timeout,
        create_fallback_response,
    )

    assert call_with_retry is not None
    assert CircuitBreaker is not None
    assert with_timeout is not None
    assert create_fallback_response is not None
