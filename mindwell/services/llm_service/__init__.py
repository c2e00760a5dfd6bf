"""LLM Service: prompt composition and resilient reply generation.

Components:
- prompt_composer.py: Deterministic PromptPayload builder
- providers.py: Gemini / OpenAI / HuggingFace clients and create_provider()
- static_responses.py: Rule-based reply bank used when every tier fails
- fallback_chain.py: Sequential provider tiers ending in the static bank
"""

from .prompt_composer import PromptComposer, PromptPayload
from .providers import (
    ProviderKind,
    ProviderConfig,
    ProviderClient,
    GeminiClient,
    OpenAIClient,
    HuggingFaceClient,
    create_provider,
)
from .static_responses import StaticResponder, StaticReply, CRISIS_SCRIPT
from .fallback_chain import (
    ProviderFallbackChain,
    ProviderTier,
    FALLBACK_PROVIDER_ID,
    unsafe_reply_reason,
)

__all__ = [
    "PromptComposer",
    "PromptPayload",
    "ProviderKind",
    "ProviderConfig",
    "ProviderClient",
    "GeminiClient",
    "OpenAIClient",
    "HuggingFaceClient",
    "create_provider",
    "StaticResponder",
    "StaticReply",
    "CRISIS_SCRIPT",
    "ProviderFallbackChain",
    "ProviderTier",
    "FALLBACK_PROVIDER_ID",
    "unsafe_reply_reason",
]
