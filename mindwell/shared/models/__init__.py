"""Shared domain models for the Mindwell core."""
from .risk import CrisisLevel, TriggerTag, HistorySummary, CrisisAssessment
from .sentiment import (
    SentimentLabel,
    IndicatorType,
    SentimentIndicator,
    SentimentAssessment,
)
from .conversation import Role, Utterance, ConversationTurn, DEFAULT_SESSION
from .chat import (
    ProviderResponse,
    Priority,
    Recommendation,
    CrisisLine,
    WebResource,
    EmergencyResources,
    TurnState,
    ChatTurnResult,
)

__all__ = [
    "CrisisLevel",
    "TriggerTag",
    "HistorySummary",
    "CrisisAssessment",
    "SentimentLabel",
    "IndicatorType",
    "SentimentIndicator",
    "SentimentAssessment",
    "Role",
    "Utterance",
    "ConversationTurn",
    "DEFAULT_SESSION",
    "ProviderResponse",
    "Priority",
    "Recommendation",
    "CrisisLine",
    "WebResource",
    "EmergencyResources",
    "TurnState",
    "ChatTurnResult",
]
