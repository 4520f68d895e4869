"""Tests for the Azure vision client."""

import json

import httpx
import pytest

from imagestudio.resilience.errors import APIRequestError, ErrorKind, classify_error
from imagestudio.vision.client import AzureVisionClient


def make_client(test_settings, handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AzureVisionClient(test_settings, http_client=http_client)


class TestAzureVisionClient:
    """Test request building and error mapping."""

    def test_chat_completions_url(self, test_settings):
        client = AzureVisionClient(test_settings, http_client=httpx.AsyncClient())
        assert client.chat_completions_url == (
            "https://test.openai.azure.com/openai/deployments/gpt-4o/chat/completions"
            "?api-version=2024-10-21"
        )

    @pytest.mark.asyncio
    async def test_returns_message_content(self, test_settings):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["api_key"] = request.headers.get("api-key")
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"ok": true}'}}]})

        client = make_client(test_settings, handler)
        content = await client.chat_completion([{"role": "user", "content": "hi"}], max_tokens=750)

        assert content == '{"ok": true}'
        assert seen["body"]["max_tokens"] == 750
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert seen["api_key"] == "test-api-key"

    @pytest.mark.asyncio
    async def test_missing_content_returns_none(self, test_settings):
        client = make_client(test_settings, lambda request: httpx.Response(200, json={"choices": []}))
        assert await client.chat_completion([], max_tokens=10) is None

    @pytest.mark.asyncio
    async def test_http_error_mapped(self, test_settings):
        def handler(request):
            return httpx.Response(
                429,
                headers={"Retry-After": "5"},
                json={"error": {"message": "Rate limit reached"}},
            )

        client = make_client(test_settings, handler)
        with pytest.raises(APIRequestError) as exc_info:
            await client.chat_completion([], max_tokens=10)

        error = exc_info.value
        assert error.status == 429
        assert error.headers.get("retry-after") == "5"
        assert classify_error(error) == ErrorKind.RATE_LIMIT

    @pytest.mark.asyncio
    async def test_content_filter_body_classified(self, test_settings):
        def handler(request):
            return httpx.Response(400, json={"error": {"code": "content_filter"}})

        client = make_client(test_settings, handler)
        with pytest.raises(APIRequestError) as exc_info:
            await client.chat_completion([], max_tokens=10)

        assert classify_error(exc_info.value) == ErrorKind.CONTENT_FILTERED

    @pytest.mark.asyncio
    async def test_transport_error_mapped(self, test_settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(test_settings, handler)
        with pytest.raises(APIRequestError) as exc_info:
            await client.chat_completion([], max_tokens=10)

        assert exc_info.value.status is None
        assert classify_error(exc_info.value) == ErrorKind.NETWORK
