"""Configuration for the chat orchestrator and the components it wires."""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from mindwell.services.context_service import ContextStoreConfig
from mindwell.services.llm_service import ProviderConfig
from mindwell.services.safety_service import RiskWeights, SafetyConfig


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class OrchestratorConfig:
    """Top-level configuration.

    Component configs are nested so build_orchestrator() needs nothing else.
    """
    turn_deadline_seconds: float = 25.0
    max_utterance_chars: int = 5000
    prompt_char_budget: int = 12_000
    prompt_context_turns: int = 3
    pii_hash_salt: Optional[str] = None

    telemetry_enabled: bool = False
    telemetry_stream: str = "mindwell-telemetry"
    telemetry_region: Optional[str] = None

    crisis_history_db_enabled: bool = False
    history_timeout_seconds: float = 2.0

    safety: SafetyConfig = field(default_factory=SafetyConfig)
    weights: RiskWeights = field(default_factory=RiskWeights)
    context: ContextStoreConfig = field(default_factory=ContextStoreConfig)
    providers: List[ProviderConfig] = field(default_factory=list)

    def __post_init__(self):
        if self.turn_deadline_seconds <= 0:
            raise ValueError("turn_deadline_seconds must be positive")
        if self.history_timeout_seconds <= 0:
            raise ValueError("history_timeout_seconds must be positive")
        if self.max_utterance_chars < 1:
            raise ValueError("max_utterance_chars must be >= 1")
        if self.prompt_char_budget < 1:
            raise ValueError("prompt_char_budget must be >= 1")

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Create config from environment variables.

        Environment variables:
            TURN_DEADLINE_SECONDS, MAX_UTTERANCE_CHARS, PROMPT_CHAR_BUDGET,
            PROMPT_CONTEXT_TURNS, PII_HASH_SALT,
            TELEMETRY_ENABLED, TELEMETRY_STREAM, AWS_REGION,
            CRISIS_HISTORY_DB_ENABLED, HISTORY_TIMEOUT_SECONDS
        plus the variables read by each nested config.
        """
        return cls(
            turn_deadline_seconds=float(os.getenv("TURN_DEADLINE_SECONDS", "25")),
            max_utterance_chars=int(os.getenv("MAX_UTTERANCE_CHARS", "5000")),
            prompt_char_budget=int(os.getenv("PROMPT_CHAR_BUDGET", "12000")),
            prompt_context_turns=int(os.getenv("PROMPT_CONTEXT_TURNS", "3")),
            pii_hash_salt=os.getenv("PII_HASH_SALT") or None,
            telemetry_enabled=_flag("TELEMETRY_ENABLED", "false"),
            telemetry_stream=os.getenv("TELEMETRY_STREAM", "mindwell-telemetry"),
            telemetry_region=os.getenv("AWS_REGION") or None,
            crisis_history_db_enabled=_flag("CRISIS_HISTORY_DB_ENABLED", "false"),
            history_timeout_seconds=float(os.getenv("HISTORY_TIMEOUT_SECONDS", "2")),
            safety=SafetyConfig.from_env(),
            weights=RiskWeights.from_env(),
            context=ContextStoreConfig.from_env(),
            providers=ProviderConfig.tiers_from_env(),
        )
