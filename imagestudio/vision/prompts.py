"""Prompt construction for vision analysis."""

import re
from typing import Any, Mapping

SYSTEM_PROMPT = """You are an AI vision specialist providing accessible, safe, and accurate descriptions of visual content.

ROLE AND OBJECTIVES:
- Generate descriptions that are factual, inclusive, and useful for all users
- Prioritize accessibility for screen readers and assistive technologies
- Support content creators with actionable insights for AI generation

SAFETY REQUIREMENTS:
- Never infer or speculate about protected characteristics unless explicitly visible and relevant
- Use person-first, respectful language
- Redact any visible PII (license plates, addresses, phone numbers)
- Flag potentially sensitive content appropriately

UNCERTAINTY HANDLING:
- Use calibrated language ("appears to be", "likely") when uncertain
- Never fabricate details not visible in the content"""

SCHEMA_MESSAGE = """Output must be valid JSON matching this schema:
{
  "metadata": {"language": "ISO 639-1 code", "confidence": "high|medium|low",
               "content_type": "photograph|illustration|screenshot|diagram|artwork|other",
               "sensitive_content": boolean, "processing_notes": ["string"]},
  "accessibility": {"alt_text": "max 125 chars", "long_description": "string",
                    "reading_level": number,
                    "color_accessibility": {"relies_on_color": boolean, "color_blind_safe": boolean}},
  "content": {"primary_subjects": ["string"], "scene_description": "string",
              "visual_elements": {"composition": "string", "lighting": "string",
                                  "colors": ["string"], "style": "string", "mood": "string"},
              "text_content": ["string"], "spatial_layout": "string"},
  "generation_guidance": {"suggested_prompt": "string", "style_keywords": ["string"],
                          "technical_parameters": {"aspect_ratio": "string",
                                                   "recommended_model": "string",
                                                   "complexity_score": number}},
  "safety_flags": {"violence": boolean, "adult_content": boolean, "pii_detected": boolean,
                   "medical_content": boolean, "weapons": boolean, "substances": boolean},
  "uncertainty_notes": ["string"]
}

Output ONLY valid JSON. Include ALL fields, using empty arrays or false where needed."""

AUDIENCES = ("general", "technical", "child", "academic")
DETAIL_LEVELS = ("brief", "standard", "detailed", "comprehensive")
TONES = ("formal", "casual", "technical", "creative")

_LANGUAGE_RE = re.compile(r"^[a-z]{2}$")


def create_image_user_message(options: Mapping[str, Any]) -> str:
    """Build the user message for a standard image description."""
    focus = options.get("focus")
    message = f"""Analyze the provided image(s) with these parameters:
- Purpose: {options.get("purpose") or "general description"}
- Target audience: {options.get("audience") or "general public"}
- Language: {options.get("language") or "en"}
- Detail level: {options.get("detail") or "standard"}
- Tone: {options.get("tone") or "neutral professional"}
- Focus areas: {", ".join(focus) if focus else "all elements"}"""

    if options.get("specific_questions"):
        message += f"\n\nAddress these specific questions:\n{options['specific_questions']}"

    message += "\n\nProvide comprehensive analysis following the JSON schema."
    return message


def create_accessibility_prompt(options: Mapping[str, Any]) -> str:
    return f"""Analyze for accessibility compliance:
- Purpose: {options.get("purpose") or "screen reader support"}
- Audience: users with visual impairments
- Language: {options.get("language") or "en"}
- Focus: spatial relationships, text content, essential visual information

Ensure alt text works without visual context and meets WCAG 2.1 AA standards."""


def create_multi_image_prompt(image_count: int, options: Mapping[str, Any]) -> str:
    focus = options.get("focus")
    return f"""Analyze {image_count} reference images for consistency:
- Purpose: {options.get("purpose") or "multi-image analysis"}
- Compare: styles, subjects, compositions, color palettes
- Focus: {", ".join(focus) if focus else "style consistency and narrative flow"}

Provide unified analysis highlighting similarities and meaningful differences."""


def build_messages(image_data_urls: list[str], options: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Build the chat messages for a vision request.

    Args:
        image_data_urls: Images encoded as data URLs
        options: Description parameters

    Returns:
        Chat-completions message list
    """
    purpose = options.get("purpose") or ""
    if "accessibility" in purpose:
        user_message = create_accessibility_prompt(options)
    elif len(image_data_urls) > 1:
        user_message = create_multi_image_prompt(len(image_data_urls), options)
    else:
        user_message = create_image_user_message(options)

    detail = "low" if options.get("detail") == "brief" else "high"
    image_parts = [
        {"type": "image_url", "image_url": {"url": url, "detail": detail}}
        for url in image_data_urls
    ]

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "assistant", "content": SCHEMA_MESSAGE},
        {"role": "user", "content": [{"type": "text", "text": user_message}, *image_parts]},
    ]


def validate_description_params(options: Mapping[str, Any]) -> list[str]:
    """Check description parameters.

    Returns:
        List of human-readable problems (empty when valid)
    """
    errors = []

    language = options.get("language")
    if language and not _LANGUAGE_RE.match(str(language)):
        errors.append('Language must be ISO 639-1 code (e.g., "en", "es")')

    if options.get("audience") and options["audience"] not in AUDIENCES:
        errors.append("Invalid audience type")

    if options.get("detail") and options["detail"] not in DETAIL_LEVELS:
        errors.append("Invalid detail level")

    if options.get("tone") and options["tone"] not in TONES:
        errors.append("Invalid tone")

    return errors
