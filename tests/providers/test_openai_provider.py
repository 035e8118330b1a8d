# tests/providers/test_openai_provider.py
"""
Tests for the OpenAI-compatible provider and the provider factory.

The AsyncOpenAI client is replaced with mocks, so no network traffic occurs.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from openai.types.chat import ChatCompletion, ChatCompletionMessage
from openai.types.chat.chat_completion import Choice

from chatrelay.config import ProviderSettings
from chatrelay.exceptions import ConfigError, ProviderError
from chatrelay.models import ChatTurn, Role
from chatrelay.providers import OpenAIProvider, create_provider
from chatrelay.providers.openai_provider import DEFAULT_BASE_URL, DEFAULT_MODEL

REQUEST = httpx.Request("POST", "https://api.together.xyz/v1/chat/completions")


def _completion(*contents, model="deepseek-test") -> ChatCompletion:
    return ChatCompletion(
        id="cmpl-1",
        object="chat.completion",
        created=0,
        model=model,
        choices=[
            Choice(
                index=i,
                finish_reason="stop",
                message=ChatCompletionMessage(role="assistant", content=content),
            )
            for i, content in enumerate(contents)
        ],
    )


@pytest.fixture
def provider():
    """Provider with a mocked SDK client."""
    instance = OpenAIProvider({"api_key": "test-key"})
    instance._client = MagicMock()
    instance._client.chat.completions.create = AsyncMock(return_value=_completion("Hello!"))
    instance._client.close = AsyncMock()
    return instance


class TestInitialization:
    def test_defaults(self):
        instance = OpenAIProvider({"api_key": "test-key"})
        assert instance.get_name() == "together"
        assert instance.default_model == DEFAULT_MODEL
        assert instance.base_url == DEFAULT_BASE_URL

    def test_custom_name(self):
        instance = OpenAIProvider({"api_key": "k", "name": "openai", "base_url": None})
        assert instance.get_name() == "openai"
        assert instance.base_url is None

    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.setenv("CHATRELAY_TEST_KEY", "only-the-factory-reads-this")
        with pytest.raises(ConfigError, match="API key not configured. Set 'CHATRELAY_TEST_KEY'"):
            OpenAIProvider({"api_key_env": "CHATRELAY_TEST_KEY"})


class TestChatCompletion:
    @pytest.mark.asyncio
    async def test_forwards_turns_and_model(self, provider):
        turns = [ChatTurn(role=Role.SYSTEM, content="be brief"), ChatTurn(role=Role.USER, content="Hi")]
        result = await provider.chat_completion(turns, model="other-model")

        kwargs = provider._client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "other-model"
        assert kwargs["stream"] is False
        assert kwargs["messages"] == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "Hi"},
        ]
        assert result.first_text == "Hello!"
        assert result.model == "deepseek-test"
        assert result.raw["id"] == "cmpl-1"

    @pytest.mark.asyncio
    async def test_default_model_used(self, provider):
        await provider.chat_completion([ChatTurn(role=Role.USER, content="Hi")])
        assert provider._client.chat.completions.create.await_args.kwargs["model"] == DEFAULT_MODEL

    @pytest.mark.asyncio
    async def test_no_choices(self, provider):
        provider._client.chat.completions.create.return_value = _completion()
        result = await provider.chat_completion([])
        assert result.candidates == []
        assert result.first_text == ""

    @pytest.mark.asyncio
    async def test_null_content_becomes_empty(self, provider):
        provider._client.chat.completions.create.return_value = _completion(None)
        result = await provider.chat_completion([])
        assert result.candidates == [""]

    @pytest.mark.asyncio
    async def test_raw_payload_logging(self, provider, caplog):
        provider.log_raw_payloads_enabled = True
        with caplog.at_level("DEBUG", logger="chatrelay.providers.openai_provider"):
            await provider.chat_completion([ChatTurn(role=Role.USER, content="Hi")])
        assert "RAW LLM REQUEST" in caplog.text
        assert "RAW LLM RESPONSE" in caplog.text


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,expected",
        [(401, "Authentication failed"), (429, "Rate limit exceeded"), (503, "API Error (Status 503)")],
    )
    async def test_status_errors(self, provider, status, expected):
        error = openai.APIStatusError("upstream said no", response=httpx.Response(status, request=REQUEST), body=None)
        provider._client.chat.completions.create.side_effect = error
        with pytest.raises(ProviderError) as exc_info:
            await provider.chat_completion([])
        assert expected in exc_info.value.detail
        assert exc_info.value.provider_name == "together"

    @pytest.mark.asyncio
    async def test_sdk_timeout(self, provider):
        provider._client.chat.completions.create.side_effect = openai.APITimeoutError(request=REQUEST)
        with pytest.raises(ProviderError, match="timed out"):
            await provider.chat_completion([])

    @pytest.mark.asyncio
    async def test_connection_error(self, provider):
        provider._client.chat.completions.create.side_effect = openai.APIConnectionError(request=REQUEST)
        with pytest.raises(ProviderError, match="Connection error"):
            await provider.chat_completion([])

    @pytest.mark.asyncio
    async def test_close(self, provider):
        await provider.close()
        provider._client.close.assert_awaited_once()


class TestCreateProvider:
    def test_together(self):
        instance = create_provider(ProviderSettings(api_key="k", model="m", log_raw_payloads=True))
        assert isinstance(instance, OpenAIProvider)
        assert instance.get_name() == "together"
        assert instance.default_model == "m"
        assert instance.log_raw_payloads_enabled

    def test_openai_type(self):
        instance = create_provider(ProviderSettings(type="openai", api_key="k", base_url=None))
        assert instance.get_name() == "openai"
        assert instance.base_url is None

    def test_unknown_type(self):
        settings = ProviderSettings.model_construct(type="bogus")
        with pytest.raises(ConfigError, match="not recognized"):
            create_provider(settings)

    def test_key_resolved_from_named_env(self, monkeypatch):
        monkeypatch.setenv("CHATRELAY_TEST_KEY", "env-key")
        instance = create_provider(ProviderSettings(api_key_env="CHATRELAY_TEST_KEY"))
        assert instance.api_key == "env-key"

    def test_explicit_key_beats_env(self, monkeypatch):
        monkeypatch.setenv("CHATRELAY_TEST_KEY", "env-key")
        instance = create_provider(ProviderSettings(api_key="explicit", api_key_env="CHATRELAY_TEST_KEY"))
        assert instance.api_key == "explicit"

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("CHATRELAY_TEST_KEY", raising=False)
        with pytest.raises(ConfigError):
            create_provider(ProviderSettings(api_key_env="CHATRELAY_TEST_KEY"))
