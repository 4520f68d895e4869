"""Azure OpenAI vision client."""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config import Settings, settings as default_settings
from ..resilience.errors import APIRequestError

logger = logging.getLogger(__name__)


class AzureVisionClient:
    """Thin async client for Azure OpenAI chat completions with images.

    Failures are raised as ``APIRequestError`` carrying status, message and
    headers so the retry layer can classify them.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            settings: Application settings. If not provided, uses module settings.
            http_client: Preconfigured httpx client (mainly for tests)
        """
        self.settings = settings or default_settings
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=self.settings.request_timeout_seconds,
        )

    @property
    def chat_completions_url(self) -> str:
        endpoint = self.settings.azure_openai_endpoint.rstrip("/")
        deployment = quote(self.settings.azure_openai_vision_deployment, safe="")
        return (
            f"{endpoint}/openai/deployments/{deployment}/chat/completions"
            f"?api-version={self.settings.azure_openai_chat_api_version}"
        )

    async def chat_completion(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int,
        temperature: Optional[float] = None,
    ) -> Optional[str]:
        """Send a chat-completions request and return the first choice's content.

        Args:
            messages: Chat messages (may include image parts)
            max_tokens: Token budget for the response
            temperature: Sampling temperature

        Returns:
            Message content string, or None if the response had none

        Raises:
            APIRequestError: On HTTP or transport failure
        """
        body = {
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": self.settings.temperature if temperature is None else temperature,
            "response_format": {"type": "json_object"},
        }
        headers = {**self.settings.auth_headers, "Content-Type": "application/json"}

        try:
            response = await self.client.post(self.chat_completions_url, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise APIRequestError(
                f"Vision API failed: {status} {e.response.text}",
                status=status,
                headers=e.response.headers,
            ) from e
        except httpx.TimeoutException as e:
            raise APIRequestError(f"Vision API timeout: {e}") from e
        except httpx.TransportError as e:
            raise APIRequestError(f"Vision API network error: {e}") from e

        data = response.json()
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Vision API response had no message content")
            return None

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()
