"""Chat turn result, provider response and recommendation models.

ChatTurnResult is the only thing that leaves the orchestration boundary.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .risk import CrisisAssessment
from .sentiment import SentimentAssessment


@dataclass(frozen=True)
class ProviderResponse:
    """Reply obtained from a provider tier (or the static fallback)."""
    text: str
    provider_id: str
    latency_ms: int = 0

    def __post_init__(self):
        if not self.text or not self.text.strip():
            raise ValueError("ProviderResponse text must be non-empty")


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 2, "medium": 1, "low": 0}[self.value]


@dataclass(frozen=True)
class Recommendation:
    """A user-facing recommendation derived from the assessments."""
    type: str
    priority: Priority
    message: str
    suggestions: List[str] = field(default_factory=list)
    resources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "type": self.type,
            "priority": self.priority.value,
            "message": self.message,
        }
        if self.suggestions:
            result["suggestions"] = list(self.suggestions)
        if self.resources:
            result["resources"] = list(self.resources)
        return result


@dataclass(frozen=True)
class CrisisLine:
    name: str
    number: str
    description: str


@dataclass(frozen=True)
class WebResource:
    name: str
    url: str


@dataclass(frozen=True)
class EmergencyResources:
    """Fixed emergency bundle, present on a result only when risk is detected."""
    crisis_lines: List[CrisisLine]
    immediate_actions: List[str]
    resources: List[WebResource] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "crisis_lines": [
                {"name": c.name, "number": c.number, "description": c.description}
                for c in self.crisis_lines
            ],
            "immediate_actions": list(self.immediate_actions),
            "resources": [{"name": r.name, "url": r.url} for r in self.resources],
        }


class TurnState(Enum):
    """Orchestrator states for one turn."""
    RECEIVED = "RECEIVED"
    ASSESSING = "ASSESSING"
    CONTEXT_LOADED = "CONTEXT_LOADED"
    COMPOSED = "COMPOSED"
    GENERATING = "GENERATING"
    CONTEXT_APPENDED = "CONTEXT_APPENDED"
    RECOMMENDED = "RECOMMENDED"
    DONE = "DONE"
    SAFE_DEGRADED = "SAFE_DEGRADED"


@dataclass(frozen=True)
class ChatTurnResult:
    """Aggregate returned to the host for one handled utterance."""
    reply: str
    crisis: CrisisAssessment
    sentiment: SentimentAssessment
    recommendations: List[Recommendation]
    emergency_resources: Optional[EmergencyResources]
    provider_id: str
    session_id: str
    state: TurnState = TurnState.DONE
    processing_ms: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.reply or not self.reply.strip():
            raise ValueError("ChatTurnResult reply must be non-empty")
        if self.emergency_resources is not None and not self.crisis.detected:
            raise ValueError("Emergency resources are only attached when crisis is detected")

    @property
    def degraded(self) -> bool:
        return self.state == TurnState.SAFE_DEGRADED

    def to_dict(self) -> Dict[str, Any]:
        """Render for the host application."""
        return {
            "content": self.reply,
            "provider_id": self.provider_id,
            "session_id": self.session_id,
            "state": self.state.value,
            "crisis": self.crisis.to_dict(),
            "sentiment": self.sentiment.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "emergency_resources": (
                self.emergency_resources.to_dict() if self.emergency_resources else None
            ),
            "processing_ms": self.processing_ms,
            "timestamp": self.created_at.isoformat(),
        }
