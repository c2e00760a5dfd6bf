"""Provider fallback chain.

Per call:
    TRY tier[0] -> (ok -> DONE) | (timeout | error | empty | unsafe -> TRY tier[1])
    ... -> ALL_FAILED -> STATIC_FALLBACK -> DONE

Tiers are tried one at a time, never concurrently, each under its own
timeout. A timed-out attempt is cancelled, not awaited further. The chain
never raises to its caller except for cancellation of the turn itself.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from mindwell.shared.errors import (
    AllProvidersExhausted,
    ProviderEmptyResponse,
    ProviderError,
    ProviderTimeout,
)
from mindwell.shared.models import ProviderResponse
from .prompt_composer import PromptPayload
from .providers import ProviderClient
from .static_responses import StaticResponder

logger = logging.getLogger(__name__)

TIER_NAMES = ("primary", "secondary", "tertiary")
FALLBACK_PROVIDER_ID = "fallback"

# Replies containing these are never shown to a user
HARMFUL_PATTERNS = (
    "kill yourself",
    "end your life",
    "you should die",
    "harm yourself",
    "commit suicide",
)

MEDICAL_PATTERNS = (
    "i diagnose",
    "you have depression",
    "you have anxiety disorder",
    "take this medication",
    "stop taking your medication",
)


def unsafe_reply_reason(text: str) -> Optional[str]:
    """Return why a provider reply must be rejected, or None if it is safe."""
    lowered = text.lower()
    for pattern in HARMFUL_PATTERNS:
        if pattern in lowered:
            logger.critical("HARMFUL_CONTENT_IN_PROVIDER_REPLY", extra={"pattern": pattern})
            return f"harmful content: {pattern}"
    for pattern in MEDICAL_PATTERNS:
        if pattern in lowered:
            logger.warning("MEDICAL_ADVICE_IN_PROVIDER_REPLY", extra={"pattern": pattern})
            return f"medical advice: {pattern}"
    return None


@dataclass(frozen=True)
class ProviderTier:
    """One ranked entry of the registry."""
    name: str
    client: ProviderClient
    timeout_seconds: float = 10.0


class ProviderFallbackChain:
    """Ordered provider registry ending in the static responder."""

    def __init__(
        self,
        tiers: Sequence[ProviderTier] = (),
        static: Optional[StaticResponder] = None,
    ):
        self.tiers = list(tiers)
        self.static = static or StaticResponder()

        logger.info(
            "FALLBACK_CHAIN_INITIALIZED",
            extra={"tiers": [(t.name, t.client.name) for t in self.tiers]}
        )

    @classmethod
    def from_clients(
        cls,
        clients: Sequence[ProviderClient],
        static: Optional[StaticResponder] = None,
    ) -> "ProviderFallbackChain":
        """Rank clients in the given order as primary, secondary, tertiary."""
        if len(clients) > len(TIER_NAMES):
            raise ValueError(f"At most {len(TIER_NAMES)} provider tiers are supported")
        tiers = [
            ProviderTier(name=name, client=client, timeout_seconds=client.config.timeout_seconds)
            for name, client in zip(TIER_NAMES, clients)
        ]
        return cls(tiers, static)

    @property
    def registered(self) -> List[Tuple[str, str]]:
        """(tier, provider) pairs in priority order."""
        return [(t.name, t.client.name) for t in self.tiers]

    async def generate(self, payload: PromptPayload) -> ProviderResponse:
        """Return a reply from the first tier that answers, else the static bank."""
        failures: List[ProviderError] = []

        for tier in self.tiers:
            start_time = time.perf_counter()
            try:
                text = await self._attempt(tier, payload)
            except ProviderError as e:
                failures.append(e)
                logger.warning(
                    "PROVIDER_ATTEMPT_FAILED",
                    extra={
                        "tier": tier.name,
                        "provider": tier.client.name,
                        "error_type": type(e).__name__,
                        "error": str(e)[:200],
                        "latency_ms": int((time.perf_counter() - start_time) * 1000),
                    }
                )
                continue

            latency_ms = int((time.perf_counter() - start_time) * 1000)
            logger.info(
                "PROVIDER_RESPONSE_RECEIVED",
                extra={
                    "tier": tier.name,
                    "provider": tier.client.name,
                    "latency_ms": latency_ms,
                    "failed_attempts": len(failures),
                }
            )
            return ProviderResponse(text=text.strip(), provider_id=tier.name, latency_ms=latency_ms)

        exhausted = AllProvidersExhausted(
            f"{len(failures)} of {len(self.tiers)} provider tiers failed"
        )
        logger.warning(
            "ALL_PROVIDERS_EXHAUSTED",
            extra={
                "detail": str(exhausted),
                "errors": [type(f).__name__ for f in failures],
            }
        )
        return self.static_response(payload)

    def static_response(self, payload: PromptPayload) -> ProviderResponse:
        reply = self.static.respond(payload.utterance, payload.crisis, payload.sentiment)
        return ProviderResponse(text=reply.text, provider_id=FALLBACK_PROVIDER_ID, latency_ms=0)

    async def _attempt(self, tier: ProviderTier, payload: PromptPayload) -> str:
        """Run one tier under its timeout and validate the reply.

        Any failure surfaces as a ProviderError subclass; CancelledError
        is left to propagate.
        """
        try:
            text = await asyncio.wait_for(
                tier.client.send(payload, tier.timeout_seconds),
                timeout=tier.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(
                f"{tier.client.name} exceeded {tier.timeout_seconds}s", tier.client.name
            ) from e
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(
                f"{tier.client.name} raised {type(e).__name__}: {e}", tier.client.name
            ) from e

        if not isinstance(text, str) or not text.strip():
            raise ProviderEmptyResponse(f"{tier.client.name} returned no text", tier.client.name)

        reason = unsafe_reply_reason(text)
        if reason is not None:
            raise ProviderError(f"{tier.client.name} reply rejected ({reason})", tier.client.name)
        return text

    async def close(self) -> None:
        for tier in self.tiers:
            await tier.client.close()
