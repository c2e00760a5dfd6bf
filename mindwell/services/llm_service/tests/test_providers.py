"""Tests for provider clients and their configuration."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import httpx
import openai
import pytest

from mindwell.shared.errors import ProviderEmptyResponse, ProviderError, ProviderTimeout
from mindwell.shared.models import CrisisAssessment, SentimentAssessment
from mindwell.services.llm_service.prompt_composer import PromptComposer
from mindwell.services.llm_service.providers import (
    GeminiClient,
    HuggingFaceClient,
    OpenAIClient,
    ProviderConfig,
    ProviderKind,
    create_provider,
)


@pytest.fixture
def payload():
    return PromptComposer().compose(
        "hello there", [], CrisisAssessment.none(), SentimentAssessment.neutral()
    )


def mock_session(status=200, json_body=None, text_body="", post_error=None):
    """aiohttp session whose post() is an async context manager."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_body)
    response.text = AsyncMock(return_value=text_body)

    ctx = MagicMock()
    if post_error is not None:
        ctx.__aenter__ = AsyncMock(side_effect=post_error)
    else:
        ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=ctx)
    return session


def gemini_config():
    return ProviderConfig(provider=ProviderKind.GEMINI, model_name="gemini-1.5-flash", api_key="g-key")


def hf_config():
    return ProviderConfig(
        provider=ProviderKind.HUGGINGFACE,
        model_name="tgi",
        api_key="hf-key",
        endpoint="https://hf.example/endpoint",
    )


class TestProviderConfig:
    """Configuration from environment."""

    def test_placeholder_key_is_not_configured(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "your-gemini-api-key-here")

        config = ProviderConfig.from_env(ProviderKind.GEMINI)

        assert config.api_key is None
        assert config.is_configured is False

    def test_from_env_values(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-real")
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
        monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "4.5")

        config = ProviderConfig.from_env(ProviderKind.OPENAI)

        assert config.api_key == "sk-real"
        assert config.model_name == "gpt-4o-mini"
        assert config.timeout_seconds == 4.5
        assert config.is_configured is True

    def test_huggingface_needs_endpoint(self):
        config = ProviderConfig(provider=ProviderKind.HUGGINGFACE, model_name="tgi", api_key="k")

        assert config.is_configured is False

    def test_tiers_skip_unconfigured(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-real")
        monkeypatch.delenv("PROVIDER_PRIMARY", raising=False)
        monkeypatch.delenv("PROVIDER_SECONDARY", raising=False)
        monkeypatch.delenv("PROVIDER_TERTIARY", raising=False)

        tiers = ProviderConfig.tiers_from_env()

        assert [t.provider for t in tiers] == [ProviderKind.OPENAI]

    def test_tiers_custom_order(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_PRIMARY", "openai")
        monkeypatch.setenv("PROVIDER_SECONDARY", "gemini")
        monkeypatch.setenv("PROVIDER_TERTIARY", "huggingface")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-real")
        monkeypatch.setenv("GEMINI_API_KEY", "g-real")
        monkeypatch.setenv("HF_ENDPOINT", "https://hf.example")

        tiers = ProviderConfig.tiers_from_env()

        assert [t.provider for t in tiers] == [
            ProviderKind.OPENAI, ProviderKind.GEMINI, ProviderKind.HUGGINGFACE,
        ]


class TestGeminiClient:
    """Gemini REST client."""

    def test_requires_key(self):
        with pytest.raises(ValueError):
            GeminiClient(ProviderConfig(provider=ProviderKind.GEMINI, model_name="m"))

    @pytest.mark.asyncio
    async def test_send(self, payload):
        session = mock_session(json_body={
            "candidates": [{"content": {"parts": [{"text": "Hi, "}, {"text": "I'm here."}]}}]
        })
        client = GeminiClient(gemini_config(), session=session)

        text = await client.send(payload, 5.0)

        assert text == "Hi, I'm here."
        url = session.post.call_args[0][0]
        kwargs = session.post.call_args[1]
        assert url.endswith("/gemini-1.5-flash:generateContent")
        assert kwargs["headers"]["x-goog-api-key"] == "g-key"
        assert kwargs["json"]["systemInstruction"]["parts"][0]["text"] == payload.system
        assert kwargs["json"]["contents"][0]["parts"][0]["text"] == payload.user

    @pytest.mark.asyncio
    async def test_no_candidates_is_empty(self, payload):
        client = GeminiClient(gemini_config(), session=mock_session(json_body={"candidates": []}))

        with pytest.raises(ProviderEmptyResponse):
            await client.send(payload, 5.0)

    @pytest.mark.asyncio
    async def test_http_error(self, payload):
        client = GeminiClient(
            gemini_config(), session=mock_session(status=503, text_body="unavailable")
        )

        with pytest.raises(ProviderError, match="HTTP 503"):
            await client.send(payload, 5.0)

    @pytest.mark.asyncio
    async def test_timeout(self, payload):
        client = GeminiClient(
            gemini_config(), session=mock_session(post_error=asyncio.TimeoutError())
        )

        with pytest.raises(ProviderTimeout):
            await client.send(payload, 5.0)

    @pytest.mark.asyncio
    async def test_connection_error(self, payload):
        client = GeminiClient(
            gemini_config(),
            session=mock_session(post_error=aiohttp.ClientConnectionError("refused")),
        )

        with pytest.raises(ProviderError) as exc_info:
            await client.send(payload, 5.0)
        assert exc_info.value.provider == "gemini"


class TestHuggingFaceClient:
    """HuggingFace Inference Endpoint client."""

    @pytest.mark.asyncio
    async def test_send_list_response(self, payload):
        session = mock_session(json_body=[{"generated_text": "I hear you."}])
        client = HuggingFaceClient(hf_config(), session=session)

        text = await client.send(payload, 5.0)

        assert text == "I hear you."
        kwargs = session.post.call_args[1]
        assert kwargs["headers"]["Authorization"] == "Bearer hf-key"
        assert kwargs["json"]["inputs"] == payload.as_text()

    @pytest.mark.asyncio
    async def test_blank_text_is_empty(self, payload):
        client = HuggingFaceClient(
            hf_config(), session=mock_session(json_body={"generated_text": "  "})
        )

        with pytest.raises(ProviderEmptyResponse):
            await client.send(payload, 5.0)


def openai_response(content):
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


class TestOpenAIClient:
    """OpenAI SDK client."""

    @pytest.fixture
    def sdk(self):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock()
        sdk.close = AsyncMock()
        return sdk

    @pytest.fixture
    def config(self):
        return ProviderConfig(provider=ProviderKind.OPENAI, model_name="gpt-3.5-turbo", api_key="sk")

    @pytest.mark.asyncio
    async def test_send(self, sdk, config, payload):
        sdk.chat.completions.create.return_value = openai_response("That sounds hard.")
        client = OpenAIClient(config, client=sdk)

        text = await client.send(payload, 3.0)

        assert text == "That sounds hard."
        kwargs = sdk.chat.completions.create.call_args[1]
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["messages"] == payload.as_messages()
        assert kwargs["timeout"] == 3.0

    @pytest.mark.asyncio
    async def test_empty_content(self, sdk, config, payload):
        sdk.chat.completions.create.return_value = openai_response(None)
        client = OpenAIClient(config, client=sdk)

        with pytest.raises(ProviderEmptyResponse):
            await client.send(payload, 3.0)

    @pytest.mark.asyncio
    async def test_timeout_maps_to_provider_timeout(self, sdk, config, payload):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        sdk.chat.completions.create.side_effect = openai.APITimeoutError(request=request)
        client = OpenAIClient(config, client=sdk)

        with pytest.raises(ProviderTimeout):
            await client.send(payload, 3.0)

    @pytest.mark.asyncio
    async def test_sdk_error_maps_to_provider_error(self, sdk, config, payload):
        sdk.chat.completions.create.side_effect = openai.OpenAIError("quota exceeded")
        client = OpenAIClient(config, client=sdk)

        with pytest.raises(ProviderError, match="quota exceeded"):
            await client.send(payload, 3.0)

    @pytest.mark.asyncio
    async def test_close(self, sdk, config):
        client = OpenAIClient(config, client=sdk)

        await client.close()

        sdk.close.assert_awaited_once()


class TestCreateProvider:
    """Factory."""

    def test_gemini(self):
        assert isinstance(create_provider(gemini_config()), GeminiClient)

    def test_huggingface(self):
        assert isinstance(create_provider(hf_config()), HuggingFaceClient)

    def test_openai(self):
        config = ProviderConfig(provider=ProviderKind.OPENAI, model_name="m", api_key="sk-test")

        assert isinstance(create_provider(config), OpenAIClient)

    def test_openai_without_key(self):
        with pytest.raises(ValueError):
            create_provider(ProviderConfig(provider=ProviderKind.OPENAI, model_name="m"))
