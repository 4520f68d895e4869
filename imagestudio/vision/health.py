"""Reachability check for the Azure OpenAI vision deployment."""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config import Settings
from ..resilience.timeout import with_timeout

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Result of a health probe."""

    healthy: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_gpt5_deployment(deployment: str) -> bool:
    name = deployment.lower()
    return "gpt-5" in name or "gpt5" in name


def build_health_request(settings: Settings) -> tuple[str, dict[str, Any]]:
    """Pick the probe URL and body for the configured deployment.

    GPT-5 deployments are probed through the Responses API unless it is
    disabled; everything else goes through chat completions.
    """
    deployment = settings.azure_openai_vision_deployment
    endpoint = settings.azure_openai_endpoint.rstrip("/")

    if is_gpt5_deployment(deployment) and settings.azure_openai_use_responses_api:
        base_url = endpoint if "/openai/v1" in endpoint else f"{endpoint}/openai/v1"
        url = f"{base_url}/responses?api-version={settings.azure_openai_api_version.strip()}"
        body = {
            "model": deployment,
            "input": [{"role": "user", "content": "Health check"}],
            "max_output_tokens": 1,
        }
    else:
        url = (
            f"{endpoint}/openai/deployments/{quote(deployment, safe='')}/chat/completions"
            f"?api-version={settings.azure_openai_chat_api_version}"
        )
        body = {
            "messages": [{"role": "user", "content": "Health check"}],
            "max_tokens": 1,
        }

    return url, body


async def check_vision_service_health(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> HealthStatus:
    """Probe the vision deployment.

    Any response below 500 counts as reachable. Never raises.

    Args:
        settings: Application settings
        client: httpx client to use (a temporary one is created otherwise)

    Returns:
        HealthStatus with latency and error details
    """
    url, body = build_health_request(settings)
    headers = {**settings.auth_headers, "Content-Type": "application/json"}
    start = time.monotonic()
    owns_client = client is None
    client = client or httpx.AsyncClient()

    try:
        response = await with_timeout(
            client.post(url, json=body, headers=headers),
            settings.health_check_timeout_seconds,
            "Health check",
        )
        latency_ms = (time.monotonic() - start) * 1000
        healthy = response.status_code < 500
        return HealthStatus(
            healthy=healthy,
            latency_ms=latency_ms,
            error=None if healthy else f"HTTP {response.status_code}",
        )
    except Exception as e:
        logger.warning(f"Vision health check failed: {e}")
        return HealthStatus(
            healthy=False,
            latency_ms=(time.monotonic() - start) * 1000,
            error=str(e),
        )
    finally:
        if owns_client:
            await client.aclose()
