"""Tests for vision module."""


def test_vision_imports():
    """Test that vision module can be imported."""
    from imagestudio.vision import (
        AzureVisionClient,
        VisionRuntime,
        VisionService,
        check_vision_service_health,
    )

    assert AzureVisionClient is not None
    assert VisionService is not None
    assert check_vision_service_health is not None
