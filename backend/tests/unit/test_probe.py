"""
Unit tests for the connection probe.

WHAT: Test probe success, classification and network failures
WHY: The probe must never raise; the settings screen shows its message
HOW: Mock HTTP with respx
"""

import httpx
import pytest
import respx

from quickchat.llm.probe import probe_connection
from quickchat.llm.types import ProviderType

from conftest import make_descriptor


@pytest.mark.unit
class TestProbe:
    """Test probe_connection()."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_key_no_network(self, openai_descriptor):
        route = respx.get("https://api.openai.com/v1/models").mock(return_value=httpx.Response(200))

        result = await probe_connection(openai_descriptor, "   ")

        assert result.success is False
        assert result.message == "API key is empty"
        assert result.status_code is None
        assert route.call_count == 0

    @pytest.mark.asyncio
    async def test_empty_base_url_no_network(self):
        descriptor = make_descriptor(ProviderType.CUSTOM, model="m")

        result = await probe_connection(descriptor, "key")

        assert result.success is False
        assert "Base URL is empty" in result.message
        assert result.status_code is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_success(self, openai_descriptor):
        route = respx.get("https://api.openai.com/v1/models").mock(
            return_value=httpx.Response(200, json={"data": [{"id": "gpt-4o-mini"}]})
        )

        result = await probe_connection(openai_descriptor, "sk-test")

        assert result.success is True
        assert result.status_code == 200
        assert result.message.startswith("Connection successful (gpt-4o-mini, ")
        assert result.message.endswith(" ms)")
        assert result.latency_ms >= 0
        assert route.calls.last.request.headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    @respx.mock
    async def test_auth_failure(self, anthropic_descriptor):
        respx.post("https://api.anthropic.com/v1/messages").mock(
            return_value=httpx.Response(401, json={"type": "error", "error": {"message": "invalid x-api-key"}})
        )

        result = await probe_connection(anthropic_descriptor, "bad-key")

        assert result.success is False
        assert result.status_code == 401
        assert result.message.startswith(
            "Authentication failed (HTTP 401) for model 'claude-3-5-sonnet-latest': "
        )
        assert "invalid x-api-key" in result.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_model_not_found(self, google_descriptor):
        respx.route(
            method="POST",
            host="generativelanguage.googleapis.com",
            path="/v1beta/models/gemini-1.5-pro:generateContent",
        ).mock(return_value=httpx.Response(404))

        result = await probe_connection(google_descriptor, "g-key")

        assert result.success is False
        assert result.status_code == 404
        assert result.message == "Model or endpoint not found (HTTP 404) for model 'gemini-1.5-pro'"

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self, openai_descriptor):
        respx.get("https://api.openai.com/v1/models").mock(side_effect=httpx.ConnectTimeout("timeout"))

        result = await probe_connection(openai_descriptor, "sk-test", timeout=3)

        assert result.success is False
        assert result.status_code is None
        assert result.message == "Request timed out after 3s"

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_refused(self, volcengine_descriptor):
        respx.post("https://ark.cn-beijing.volces.com/api/v3/responses").mock(
            side_effect=httpx.ConnectError("connection refused")
        )

        result = await probe_connection(volcengine_descriptor, "ark-key")

        assert result.success is False
        assert result.status_code is None
        assert result.message.startswith("Network error: ")
        assert "refused" in result.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_shared_client_left_open(self, openai_descriptor):
        respx.get("https://api.openai.com/v1/models").mock(return_value=httpx.Response(200))

        async with httpx.AsyncClient() as client:
            result = await probe_connection(openai_descriptor, "sk-test", client=client)
            assert result.success is True
            assert client.is_closed is False
