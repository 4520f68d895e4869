"""Pytest configuration and fixtures for Image Studio tests."""

import pytest

from imagestudio.config import Settings
from imagestudio.resilience.retry import RetryPolicy


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def use_test_environment(monkeypatch):
    """Ensure all tests use test environment variables."""
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://test.openai.azure.com")
    monkeypatch.setenv("AZURE_OPENAI_API_KEY", "test-api-key")
    monkeypatch.setenv("AZURE_OPENAI_VISION_DEPLOYMENT", "gpt-4o")


@pytest.fixture
def clock():
    """Fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at a temporary media library."""
    return Settings(
        azure_openai_endpoint="https://test.openai.azure.com",
        azure_openai_api_key="test-api-key",
        azure_openai_vision_deployment="gpt-4o",
        image_path=str(tmp_path / "images"),
        max_retries=2,
        request_timeout_seconds=1.0,
        health_check_timeout_seconds=1.0,
    )


@pytest.fixture
def fast_policy():
    """Retry policy with negligible delays."""
    return RetryPolicy(max_retries=2, base_delay=0.001, max_delay=0.01, linear_step=0.001,
                       fallback_step=0.001, jitter=0)


@pytest.fixture
def sample_description():
    """A complete structured description as returned by the vision API."""
    return {
        "metadata": {
            "language": "en",
            "confidence": "high",
            "content_type": "photograph",
            "sensitive_content": False,
            "processing_notes": [],
        },
        "accessibility": {
            "alt_text": "A red bicycle leaning against a brick wall",
            "long_description": "A red bicycle leans against a weathered brick wall in daylight.",
            "reading_level": 6,
            "color_accessibility": {"relies_on_color": True, "color_blind_safe": False},
        },
        "content": {
            "primary_subjects": ["bicycle"],
            "scene_description": "Street scene",
            "visual_elements": {
                "composition": "centered",
                "lighting": "daylight",
                "colors": ["red", "brown"],
                "style": "photographic",
                "mood": "calm",
            },
            "text_content": [],
            "spatial_layout": "bicycle in the foreground",
        },
        "generation_guidance": {
            "suggested_prompt": "A red bicycle against a brick wall",
            "style_keywords": ["urban"],
            "technical_parameters": {
                "aspect_ratio": "4:3",
                "recommended_model": "gpt-image-1",
                "complexity_score": 3,
            },
        },
        "safety_flags": {
            "violence": False,
            "adult_content": False,
            "pii_detected": False,
            "medical_content": False,
            "weapons": False,
            "substances": False,
        },
        "uncertainty_notes": [],
    }
