"""Fallback payloads for failed vision analysis.

When a vision call fails with a fallback hint, callers return one of these
structured descriptions instead of surfacing the raw failure.
"""

import logging
from typing import Any, Optional, Sequence

from .errors import FallbackStrategy

logger = logging.getLogger(__name__)


def _base_response(error: BaseException) -> dict[str, Any]:
    message = getattr(error, "message", None) or str(error)
    return {
        "metadata": {
            "language": "en",
            "confidence": "low",
            "content_type": "other",
            "sensitive_content": False,
            "processing_notes": [f"Fallback response due to: {message}"],
        },
        "accessibility": {
            "alt_text": "Image analysis unavailable",
            "long_description": "Unable to provide detailed description due to technical issues.",
            "reading_level": 8,
            "color_accessibility": {
                "relies_on_color": False,
                "color_blind_safe": True,
            },
        },
        "content": {
            "primary_subjects": ["unknown"],
            "scene_description": "Analysis unavailable",
            "visual_elements": {
                "composition": "unavailable",
                "lighting": "unavailable",
                "colors": [],
                "style": "unavailable",
                "mood": "unavailable",
            },
            "text_content": [],
            "spatial_layout": "unavailable",
        },
        "generation_guidance": {
            "suggested_prompt": "Image analysis failed - manual prompt required",
            "style_keywords": [],
            "technical_parameters": {
                "aspect_ratio": "unknown",
                "recommended_model": "gpt-image-1",
                "complexity_score": 5,
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
        "uncertainty_notes": ["Complete analysis unavailable due to service error"],
        "is_fallback": True,
    }


def create_fallback_response(
    strategy: Optional[FallbackStrategy],
    error: BaseException,
    image_ids: Sequence[str],
) -> dict[str, Any]:
    """Build a degraded-but-valid structured description.

    Args:
        strategy: Fallback hint carried by the error (None for the base payload)
        error: The failure being replaced
        image_ids: Images the request was about

    Returns:
        Structured description dictionary
    """
    response = _base_response(error)
    count = len(image_ids)
    plural = "s" if count > 1 else ""

    if strategy == FallbackStrategy.USE_GENERIC_DESCRIPTION:
        response["accessibility"]["alt_text"] = f"Image{plural} from user library"
        response["accessibility"]["long_description"] = (
            f"This contains {count} user-generated image{plural} from the media library. "
            "Detailed analysis is not available at this time."
        )
        response["content"]["scene_description"] = (
            f"User library image{plural} - content analysis unavailable"
        )

    elif strategy == FallbackStrategy.REDUCE_DETAIL:
        response["metadata"]["processing_notes"] = [
            "Reduced detail analysis due to service constraints"
        ]
        response["accessibility"]["alt_text"] = "Image content - full analysis unavailable"

    logger.info(
        f"Built fallback response ({strategy.value if strategy else 'BASE'}) "
        f"for {count} image{plural}"
    )
    return response
