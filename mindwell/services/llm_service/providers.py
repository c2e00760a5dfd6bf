"""Provider clients for upstream language models.

Each client implements send(payload, timeout) -> text and raises a
ProviderError subclass on failure. Clients never fall back on their own;
ordering and degradation belong to ProviderFallbackChain.

Supported providers:
- Gemini (REST generateContent via aiohttp)
- OpenAI (chat completions via the openai SDK)
- HuggingFace (Inference Endpoint via aiohttp)
"""
import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp
import openai

from mindwell.shared.errors import ProviderEmptyResponse, ProviderError, ProviderTimeout
from .prompt_composer import PromptPayload

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

# Values shipped in sample .env files; treated the same as an unset key
PLACEHOLDER_KEYS = frozenset({
    "your-gemini-api-key-here",
    "your-openai-api-key-here",
    "your-hf-api-key-here",
    "changeme",
})


class ProviderKind(Enum):
    """Supported provider implementations."""
    GEMINI = "gemini"
    OPENAI = "openai"
    HUGGINGFACE = "huggingface"


_DEFAULT_MODELS = {
    ProviderKind.GEMINI: "gemini-1.5-flash",
    ProviderKind.OPENAI: "gpt-3.5-turbo",
    ProviderKind.HUGGINGFACE: "tgi",
}


def _real_key(value: Optional[str]) -> Optional[str]:
    if not value or value.strip().lower() in PLACEHOLDER_KEYS:
        return None
    return value.strip()


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for one provider tier."""
    provider: ProviderKind
    model_name: str
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    max_tokens: int = 500
    temperature: float = 0.7
    timeout_seconds: float = 10.0

    @property
    def is_configured(self) -> bool:
        if self.provider == ProviderKind.HUGGINGFACE:
            return bool(self.endpoint)
        return _real_key(self.api_key) is not None

    @classmethod
    def from_env(cls, provider: ProviderKind) -> "ProviderConfig":
        """Create config for one provider from environment variables.

        Environment variables:
            GEMINI_API_KEY, GEMINI_MODEL
            OPENAI_API_KEY, OPENAI_MODEL
            HF_ENDPOINT, HF_API_KEY, HF_MODEL
            PROVIDER_MAX_TOKENS, PROVIDER_TEMPERATURE, PROVIDER_TIMEOUT_SECONDS
        """
        prefix = {
            ProviderKind.GEMINI: "GEMINI",
            ProviderKind.OPENAI: "OPENAI",
            ProviderKind.HUGGINGFACE: "HF",
        }[provider]
        return cls(
            provider=provider,
            model_name=os.getenv(f"{prefix}_MODEL", _DEFAULT_MODELS[provider]),
            api_key=_real_key(os.getenv(f"{prefix}_API_KEY")),
            endpoint=os.getenv(f"{prefix}_ENDPOINT") or None,
            max_tokens=int(os.getenv("PROVIDER_MAX_TOKENS", "500")),
            temperature=float(os.getenv("PROVIDER_TEMPERATURE", "0.7")),
            timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10")),
        )

    @classmethod
    def tiers_from_env(cls) -> List["ProviderConfig"]:
        """Configured tiers in priority order.

        PROVIDER_PRIMARY / PROVIDER_SECONDARY / PROVIDER_TERTIARY name a
        provider each (default: gemini, then openai). Tiers without usable
        credentials are skipped.
        """
        names = [
            os.getenv("PROVIDER_PRIMARY", ProviderKind.GEMINI.value),
            os.getenv("PROVIDER_SECONDARY", ProviderKind.OPENAI.value),
            os.getenv("PROVIDER_TERTIARY", ""),
        ]
        configs: List[ProviderConfig] = []
        for name in names:
            if not name:
                continue
            config = cls.from_env(ProviderKind(name.strip().lower()))
            if config.is_configured:
                configs.append(config)
            else:
                logger.warning("PROVIDER_NOT_CONFIGURED", extra={"provider": name})
        return configs


class ProviderClient(ABC):
    """Abstract provider client."""

    def __init__(self, config: ProviderConfig):
        self.config = config
        logger.info(
            "PROVIDER_CLIENT_INITIALIZED",
            extra={"provider": config.provider.value, "model": config.model_name}
        )

    @property
    def name(self) -> str:
        return self.config.provider.value

    @abstractmethod
    async def send(self, payload: PromptPayload, timeout: float) -> str:
        """Send the payload and return the reply text.

        Raises:
            ProviderTimeout: The upstream call timed out
            ProviderEmptyResponse: The upstream answered with no text
            ProviderError: Any other upstream failure
        """
        pass

    async def close(self) -> None:
        pass

    def _empty(self) -> ProviderEmptyResponse:
        return ProviderEmptyResponse(f"{self.name} returned an empty response", self.name)


class _HTTPProviderClient(ProviderClient):
    """Shared aiohttp POST handling for REST providers."""

    def __init__(self, config: ProviderConfig, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(config)
        self._session = session

    async def _post_json(
        self,
        url: str,
        headers: Dict[str, str],
        body: Dict[str, Any],
        timeout: float,
    ) -> Any:
        try:
            if self._session is not None:
                return await self._request(self._session, url, headers, body, timeout)
            async with aiohttp.ClientSession() as session:
                return await self._request(session, url, headers, body, timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(f"{self.name} timed out after {timeout}s", self.name) from e
        except aiohttp.ClientError as e:
            raise ProviderError(f"{self.name} request failed: {e}", self.name) from e

    async def _request(self, session, url, headers, body, timeout) -> Any:
        async with session.post(
            url,
            headers=headers,
            json=body,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            if response.status >= 400:
                detail = await response.text()
                raise ProviderError(
                    f"{self.name} returned HTTP {response.status}: {detail[:200]}",
                    self.name,
                )
            return await response.json()


class GeminiClient(_HTTPProviderClient):
    """Google Gemini generateContent REST API."""

    def __init__(self, config: ProviderConfig, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(config, session)
        if not config.api_key:
            raise ValueError("Gemini API key required")

    async def send(self, payload: PromptPayload, timeout: float) -> str:
        url = f"{GEMINI_API_BASE}/{self.config.model_name}:generateContent"
        headers = {"x-goog-api-key": self.config.api_key}
        body = {
            "systemInstruction": {"parts": [{"text": payload.system}]},
            "contents": [{"role": "user", "parts": [{"text": payload.user}]}],
            "generationConfig": {
                "maxOutputTokens": self.config.max_tokens,
                "temperature": self.config.temperature,
            },
        }

        result = await self._post_json(url, headers, body, timeout)

        try:
            parts = result["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise self._empty()
        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            raise self._empty()
        return text


class HuggingFaceClient(_HTTPProviderClient):
    """HuggingFace Inference Endpoint (text-generation)."""

    def __init__(self, config: ProviderConfig, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(config, session)
        if not config.endpoint:
            raise ValueError("HuggingFace endpoint required")

        self.headers: Dict[str, str] = {}
        if config.api_key:
            self.headers["Authorization"] = f"Bearer {config.api_key}"

    async def send(self, payload: PromptPayload, timeout: float) -> str:
        body = {
            "inputs": payload.as_text(),
            "parameters": {
                "max_new_tokens": self.config.max_tokens,
                "temperature": self.config.temperature,
                "return_full_text": False,
            },
        }

        result = await self._post_json(self.config.endpoint, self.headers, body, timeout)

        if isinstance(result, list) and result:
            text = result[0].get("generated_text", "")
        elif isinstance(result, dict):
            text = result.get("generated_text", "")
        else:
            text = ""
        if not text or not text.strip():
            raise self._empty()
        return text


class OpenAIClient(ProviderClient):
    """OpenAI chat completions API."""

    def __init__(self, config: ProviderConfig, client: Optional[openai.AsyncOpenAI] = None):
        super().__init__(config)
        if client is None:
            if not config.api_key:
                raise ValueError("OpenAI API key required")
            client = openai.AsyncOpenAI(api_key=config.api_key, max_retries=0)
        self.client = client

    async def send(self, payload: PromptPayload, timeout: float) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.config.model_name,
                messages=payload.as_messages(),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                timeout=timeout,
            )
        except openai.APITimeoutError as e:
            raise ProviderTimeout(f"openai timed out after {timeout}s", self.name) from e
        except openai.OpenAIError as e:
            raise ProviderError(f"openai request failed: {e}", self.name) from e

        if not response.choices:
            raise self._empty()
        text = response.choices[0].message.content
        if not text or not text.strip():
            raise self._empty()
        return text

    async def close(self) -> None:
        await self.client.close()


def create_provider(config: ProviderConfig) -> ProviderClient:
    """Factory function to create a provider client.

    Raises:
        ValueError: If the provider is not supported or lacks credentials
    """
    if config.provider == ProviderKind.GEMINI:
        return GeminiClient(config)
    elif config.provider == ProviderKind.OPENAI:
        return OpenAIClient(config)
    elif config.provider == ProviderKind.HUGGINGFACE:
        return HuggingFaceClient(config)
    else:
        raise ValueError(f"Unsupported provider: {config.provider}")
