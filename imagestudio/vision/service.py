"""Vision description pipeline.

Composes the cache, circuit breaker, retry orchestrator, timeout and
metrics around the Azure vision client. Failures that carry a fallback
hint are turned into degraded-but-valid descriptions.
"""

import asyncio
import base64
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

import httpx

from ..cache import TTLCache, generate_cache_key
from ..config import Settings, settings as default_settings
from ..monitoring.metrics import VisionMetrics
from ..resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from ..resilience.errors import ErrorKind, VisionAPIError
from ..resilience.fallback import create_fallback_response
from ..resilience.retry import BackoffStrategy, RetryPolicy, call_with_retry
from ..resilience.timeout import with_timeout
from .client import AzureVisionClient
from .health import check_vision_service_health
from .prompts import build_messages, validate_description_params

logger = logging.getLogger(__name__)

ImageLoader = Callable[[Sequence[str]], Awaitable[list[str]]]

MAX_IMAGES = 10

REQUIRED_SECTIONS = (
    "metadata",
    "accessibility",
    "content",
    "generation_guidance",
    "safety_flags",
)

SALVAGE_DEFAULTS: dict[str, Any] = {
    "metadata": {
        "language": "en",
        "confidence": "low",
        "content_type": "other",
        "sensitive_content": False,
        "processing_notes": [],
    },
    "accessibility": {
        "alt_text": "Image description unavailable",
        "long_description": "Detailed description could not be generated.",
        "reading_level": 8,
        "color_accessibility": {"relies_on_color": False, "color_blind_safe": True},
    },
    "content": {
        "primary_subjects": ["unknown"],
        "scene_description": "Description unavailable",
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
        "suggested_prompt": "Manual prompt required",
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
    "uncertainty_notes": [],
}

_MIME_TYPES = {"jpg": "image/jpeg", "jpeg": "image/jpeg", "webp": "image/webp", "gif": "image/gif"}


@dataclass
class VisionRuntime:
    """Shared resilience state, constructed once per process."""

    cache: TTLCache
    breaker: CircuitBreaker
    metrics: VisionMetrics

    @classmethod
    def from_settings(cls, settings: Settings) -> "VisionRuntime":
        return cls(
            cache=TTLCache(
                max_entries=settings.cache_max_entries,
                default_ttl=settings.cache_ttl_seconds,
            ),
            breaker=CircuitBreaker(
                "vision_api",
                CircuitBreakerConfig(
                    failure_threshold=settings.breaker_failure_threshold,
                    reset_timeout=settings.breaker_reset_timeout_seconds,
                    monitor_window=settings.breaker_monitor_window_seconds,
                ),
            ),
            metrics=VisionMetrics(),
        )


def _merge_defaults(defaults: Any, partial: Any) -> Any:
    if isinstance(defaults, dict):
        partial = partial if isinstance(partial, dict) else {}
        merged = dict(partial)
        for key, default in defaults.items():
            merged[key] = _merge_defaults(default, partial.get(key))
        return merged
    if partial is None or partial == "" or (isinstance(defaults, list) and not isinstance(partial, list)):
        return defaults.copy() if isinstance(defaults, list) else defaults
    return partial


def salvage_partial_response(partial: Mapping[str, Any]) -> dict[str, Any]:
    """Fill the gaps of a malformed description with defaults."""
    salvaged = _merge_defaults(SALVAGE_DEFAULTS, dict(partial))
    salvaged["metadata"]["processing_notes"].append(
        "Response partially recovered from invalid format"
    )
    salvaged["uncertainty_notes"].append("Response format was partially invalid")
    return salvaged


def parse_structured_description(content: Optional[str]) -> dict[str, Any]:
    """Parse the model's JSON output into a structured description.

    Raises:
        VisionAPIError: NETWORK for an empty response, VALIDATION for non-JSON
    """
    if not content:
        raise VisionAPIError("Empty response from vision API", ErrorKind.NETWORK, True)

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise VisionAPIError(
            "Invalid JSON response from vision API", ErrorKind.VALIDATION, False
        ) from e

    if not isinstance(parsed, dict):
        raise VisionAPIError(
            "Invalid JSON response from vision API", ErrorKind.VALIDATION, False
        )

    complete = all(isinstance(parsed.get(section), dict) for section in REQUIRED_SECTIONS)
    if not complete or not isinstance(parsed.get("uncertainty_notes", []), list):
        logger.warning("Vision API response failed validation, salvaging partial response")
        return salvage_partial_response(parsed)

    return parsed


class VisionService:
    """Describes library images through the resilient vision pipeline."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runtime: Optional[VisionRuntime] = None,
        client: Optional[AzureVisionClient] = None,
        image_loader: Optional[ImageLoader] = None,
        health_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the service.

        Args:
            settings: Application settings. If not provided, uses module settings.
            runtime: Shared cache, breaker and metrics
            client: Vision API client
            image_loader: Coroutine mapping image ids to data URLs
            health_client: httpx client used by ``health_check``
        """
        self.settings = settings or default_settings
        self.runtime = runtime or VisionRuntime.from_settings(self.settings)
        self.client = client or AzureVisionClient(self.settings)
        self.image_loader = image_loader or self._load_library_images
        self.health_client = health_client

    async def process_image_description(
        self,
        image_ids: Sequence[str],
        options: Optional[Mapping[str, Any]] = None,
        force: bool = False,
    ) -> dict[str, Any]:
        """Describe one or more library images.

        Args:
            image_ids: Library image ids (1 to 10)
            options: Description parameters (purpose, audience, language, ...)
            force: Bypass the cache

        Returns:
            Structured description, or a fallback payload when the failure
            carries a fallback hint

        Raises:
            VisionAPIError: On failures without a fallback hint
        """
        options = dict(options or {})
        cache = self.runtime.cache
        metrics = self.runtime.metrics
        start = time.monotonic()
        cache_key: Optional[str] = None

        try:
            self._validate_image_ids(image_ids)
            problems = validate_description_params(options)
            if problems:
                raise VisionAPIError(
                    f"Invalid parameters: {', '.join(problems)}",
                    ErrorKind.VALIDATION,
                    False,
                )

            if self.settings.cache_enabled and not force:
                cache_key = generate_cache_key(image_ids, options)
                cached = cache.get(cache_key)
                if cached is not None:
                    metrics.record_cache_hit()
                    logger.debug(f"Vision cache hit for {len(image_ids)} image(s)")
                    return cached
                metrics.record_cache_miss()

            image_data_urls = await self.image_loader(image_ids)
            messages = build_messages(image_data_urls, options)

            content = await self.runtime.breaker.call(lambda: self._describe_with_retry(messages))
            result = parse_structured_description(content)

            if cache_key:
                cache.set(cache_key, result, self.settings.cache_ttl_seconds)

            metrics.record_request(True, self._elapsed_ms(start))
            return result

        except VisionAPIError as e:
            metrics.record_request(False, self._elapsed_ms(start), e.kind)

            if e.fallback_strategy:
                logger.warning(f"Vision analysis failed ({e.kind.value}), returning fallback")
                fallback = create_fallback_response(e.fallback_strategy, e, image_ids)
                if cache_key:
                    cache.set(cache_key, fallback, self.settings.fallback_cache_ttl_seconds)
                return fallback
            raise

        except Exception as e:
            metrics.record_request(False, self._elapsed_ms(start))
            logger.exception("Unexpected vision processing failure")
            raise VisionAPIError(
                f"Vision processing failed: {e}", ErrorKind.NETWORK, True
            ) from e

    async def _describe_with_retry(self, messages: list[dict[str, Any]]) -> Optional[str]:
        max_tokens = self.settings.max_tokens

        def on_degrade(reduced: int) -> None:
            nonlocal max_tokens
            max_tokens = reduced

        policy = RetryPolicy(
            max_retries=self.settings.max_retries,
            backoff=BackoffStrategy(self.settings.retry_backoff),
            allow_degradation=True,
            max_tokens=max_tokens,
        )

        return await call_with_retry(
            lambda: with_timeout(
                self.client.chat_completion(messages, max_tokens),
                self.settings.request_timeout_seconds,
                "Vision API call",
            ),
            policy,
            context="Vision Analysis",
            on_degrade=on_degrade,
        )

    async def health_check(self) -> dict[str, Any]:
        """Report service reachability, cache, breaker and metrics."""
        service_health = await check_vision_service_health(self.settings, self.health_client)
        breaker_status = self.runtime.breaker.get_status()

        return {
            "healthy": service_health.healthy
            and breaker_status["state"] != CircuitState.OPEN.value,
            "details": {
                "service": service_health.to_dict(),
                "cache": {"size": self.runtime.cache.size(), "healthy": True},
                "circuit_breaker": breaker_status,
                "metrics": self.runtime.metrics.get_metrics().to_dict(),
            },
        }

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.monotonic() - start) * 1000

    @staticmethod
    def _validate_image_ids(image_ids: Sequence[str]) -> None:
        if not image_ids or isinstance(image_ids, str):
            raise VisionAPIError("No images provided", ErrorKind.VALIDATION, False)

        if len(image_ids) > MAX_IMAGES:
            raise VisionAPIError(
                f"Too many images (max {MAX_IMAGES})", ErrorKind.VALIDATION, False
            )

        for image_id in image_ids:
            if not image_id or not isinstance(image_id, str):
                raise VisionAPIError("Invalid image ID provided", ErrorKind.VALIDATION, False)

    async def _load_library_images(self, image_ids: Sequence[str]) -> list[str]:
        """Load images listed in the library manifest as data URLs."""
        return await asyncio.to_thread(self._read_library_images, list(image_ids))

    def _read_library_images(self, image_ids: list[str]) -> list[str]:
        image_dir = Path(self.settings.image_path)
        manifest_path = image_dir.parent / "manifest.json"
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))

        data_urls = []
        for image_id in image_ids:
            item = next(
                (i for i in manifest if i.get("kind") == "image" and i.get("id") == image_id),
                None,
            )
            if item is None:
                raise VisionAPIError(f"Image {image_id} not found", ErrorKind.VALIDATION, False)

            filename = item["filename"]
            raw = (image_dir / filename).read_bytes()
            ext = Path(filename).suffix.lstrip(".").lower()
            mime_type = _MIME_TYPES.get(ext, "image/png")
            data_urls.append(f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}")

        return data_urls
