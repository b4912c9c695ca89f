"""
Unit tests for vendor request construction.

WHAT: Test URL, headers and body per vendor family, plus local validation
WHY: A wrong wire shape fails only against the real vendor
HOW: Build requests for each provider type and inspect them
"""

import pytest

from quickchat.core.config import settings
from quickchat.llm.messages import normalize
from quickchat.llm.request_builder import build_request, build_probe_request
from quickchat.llm.types import (
    ChatMessage,
    NormalizedConversation,
    ProviderType,
    ProviderValidationError,
)

from conftest import make_descriptor


@pytest.fixture
def conversation():
    return normalize(
        [
            ChatMessage("system", "Be brief"),
            ChatMessage("user", "Hi"),
            ChatMessage("assistant", "Hello!"),
            ChatMessage("user", "How are you?"),
        ],
        "",
    )


@pytest.mark.unit
class TestValidation:
    """Test validation before any request is built."""

    def test_empty_api_key(self, openai_descriptor):
        with pytest.raises(ProviderValidationError) as exc_info:
            build_request(openai_descriptor, "  ", normalize(None, "Hi"), stream=True)
        assert exc_info.value.code == "EMPTY_API_KEY"

    def test_empty_base_url(self):
        descriptor = make_descriptor(ProviderType.CUSTOM, model="local-model")
        with pytest.raises(ProviderValidationError) as exc_info:
            build_request(descriptor, "sk-test", normalize(None, "Hi"), stream=True)
        assert exc_info.value.code == "EMPTY_BASE_URL"

    def test_empty_model(self):
        descriptor = make_descriptor(ProviderType.OPENAI, model=" ")
        with pytest.raises(ProviderValidationError) as exc_info:
            build_request(descriptor, "sk-test", normalize(None, "Hi"), stream=True)
        assert exc_info.value.code == "EMPTY_MODEL"

    def test_empty_messages(self, openai_descriptor):
        with pytest.raises(ProviderValidationError) as exc_info:
            build_request(openai_descriptor, "sk-test", NormalizedConversation(messages=()), stream=True)
        assert exc_info.value.code == "EMPTY_MESSAGES"

    def test_key_checked_before_base_url(self):
        descriptor = make_descriptor(ProviderType.CUSTOM, model="")
        with pytest.raises(ProviderValidationError) as exc_info:
            build_request(descriptor, "", normalize(None, "Hi"), stream=True)
        assert exc_info.value.code == "EMPTY_API_KEY"


@pytest.mark.unit
class TestChatCompletions:
    """Test OpenAI-compatible requests."""

    def test_streaming_request(self, openai_descriptor, conversation):
        request = build_request(openai_descriptor, " sk-test ", conversation, stream=True)

        assert request.method == "POST"
        assert request.url == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert request.headers["Accept"] == "text/event-stream"
        assert request.json["model"] == "gpt-4o-mini"
        assert request.json["stream"] is True
        assert request.json["temperature"] == settings.LLM_DEFAULT_TEMPERATURE
        assert [m["role"] for m in request.json["messages"]] == ["system", "user", "assistant", "user"]
        assert request.params == {}

    def test_custom_base_url_trailing_slash(self, conversation):
        descriptor = make_descriptor(ProviderType.CUSTOM, model="llama3", base_url="http://localhost:11434/v1/")
        request = build_request(descriptor, "key", conversation, stream=False)

        assert request.url == "http://localhost:11434/v1/chat/completions"
        assert request.json["stream"] is False
        assert "Accept" not in request.headers


@pytest.mark.unit
class TestResponses:
    """Test responses-style (Volcengine) requests."""

    def test_request_shape(self, volcengine_descriptor, conversation):
        request = build_request(volcengine_descriptor, "ark-key", conversation, stream=True)

        assert request.url == "https://ark.cn-beijing.volces.com/api/v3/responses"
        assert request.headers["Authorization"] == "Bearer ark-key"
        assert request.json["input"] == conversation.as_payload()
        assert request.json["stream"] is True
        assert "messages" not in request.json


@pytest.mark.unit
class TestAnthropic:
    """Test Anthropic Messages requests."""

    def test_request_shape(self, anthropic_descriptor, conversation):
        request = build_request(anthropic_descriptor, "ant-key", conversation, stream=True, max_tokens=256)

        assert request.url == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "ant-key"
        assert request.headers["anthropic-version"] == settings.ANTHROPIC_API_VERSION
        assert "Authorization" not in request.headers
        assert request.json["max_tokens"] == 256
        assert request.json["system"] == "Be brief"
        assert [m["role"] for m in request.json["messages"]] == ["user", "assistant", "user"]

    def test_no_system_field_without_system_turn(self, anthropic_descriptor):
        request = build_request(anthropic_descriptor, "ant-key", normalize(None, "Hi"), stream=False)
        assert "system" not in request.json
        assert request.json["stream"] is False


@pytest.mark.unit
class TestGoogle:
    """Test Gemini generateContent requests."""

    def test_streaming_request(self, google_descriptor, conversation):
        request = build_request(google_descriptor, "g-key", conversation, stream=True)

        assert request.url == (
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-pro:streamGenerateContent"
        )
        assert request.params == {"key": "g-key", "alt": "sse"}
        assert "g-key" not in request.redacted_url()
        assert request.json["contents"][0] == {"role": "user", "parts": [{"text": "Hi"}]}
        assert request.json["contents"][1]["role"] == "model"
        assert request.json["systemInstruction"] == {"parts": [{"text": "Be brief"}]}
        assert request.json["generationConfig"]["maxOutputTokens"] == settings.LLM_DEFAULT_MAX_TOKENS

    def test_non_streaming_request(self, google_descriptor):
        request = build_request(google_descriptor, "g-key", normalize(None, "Hi"), stream=False)

        assert request.url.endswith("/models/gemini-1.5-pro:generateContent")
        assert request.params == {"key": "g-key"}
        assert "systemInstruction" not in request.json


@pytest.mark.unit
class TestProbeRequest:
    """Test connection probe requests."""

    def test_chat_completions_lists_models(self, openai_descriptor):
        request = build_probe_request(openai_descriptor, "sk-test")
        assert request.method == "GET"
        assert request.url == "https://api.openai.com/v1/models"
        assert request.json is None

    def test_anthropic_one_token(self, anthropic_descriptor):
        request = build_probe_request(anthropic_descriptor, "ant-key")
        assert request.json["max_tokens"] == 1
        assert request.json["messages"] == [{"role": "user", "content": "ping"}]

    def test_google_generate_content(self, google_descriptor):
        request = build_probe_request(google_descriptor, "g-key")
        assert request.url.endswith(":generateContent")
        assert request.json["generationConfig"]["maxOutputTokens"] == 8
        assert request.params == {"key": "g-key"}

    def test_responses_capped_output(self, volcengine_descriptor):
        request = build_probe_request(volcengine_descriptor, "ark-key")
        assert request.url.endswith("/responses")
        assert request.json["max_output_tokens"] == 8

    def test_empty_key_rejected(self, openai_descriptor):
        with pytest.raises(ProviderValidationError):
            build_probe_request(openai_descriptor, "")
