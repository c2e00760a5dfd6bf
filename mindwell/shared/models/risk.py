"""Crisis level and risk assessment domain models.

Trigger tags carry their severity from the moment an extractor creates
them, so nothing downstream has to infer severity from a trigger's name.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class CrisisLevel(Enum):
    """Ordinal crisis classification: none < low < medium < high."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def escalate(self) -> "CrisisLevel":
        """Return the next level up. HIGH stays HIGH, NONE stays NONE."""
        if self in (CrisisLevel.NONE, CrisisLevel.HIGH):
            return self
        return _LEVEL_ORDER[self.rank + 1]

    @classmethod
    def highest(cls, levels) -> "CrisisLevel":
        result = cls.NONE
        for level in levels:
            if level.rank > result.rank:
                result = level
        return result


_LEVEL_ORDER = [CrisisLevel.NONE, CrisisLevel.LOW, CrisisLevel.MEDIUM, CrisisLevel.HIGH]


@dataclass(frozen=True)
class TriggerTag:
    """One piece of risk evidence emitted by a signal extractor.

    Immutable - severity is fixed when the extractor creates the tag.
    """
    tag: str
    severity: CrisisLevel
    source: str
    weight: float = 0.0

    def __post_init__(self):
        if self.severity == CrisisLevel.NONE:
            raise ValueError(f"Trigger {self.tag!r} must carry a severity above none")
        if self.weight < 0.0:
            raise ValueError(f"Trigger weight must be non-negative, got {self.weight}")


@dataclass(frozen=True)
class HistorySummary:
    """Summary of a user's recent crisis history, used only to escalate."""
    recent_crisis_count: int
    window_days: int = 7

    @property
    def has_recent_crisis(self) -> bool:
        return self.recent_crisis_count >= 1


@dataclass(frozen=True)
class CrisisAssessment:
    """Result of crisis detection for a single utterance.

    Invariant: detected is False exactly when level is NONE, and a
    non-detection never carries triggers.
    """
    detected: bool
    level: CrisisLevel
    triggers: List[TriggerTag] = field(default_factory=list)
    confidence: float = 0.0
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extractor_errors: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")
        if self.detected != (self.level != CrisisLevel.NONE):
            raise ValueError(
                f"detected={self.detected} is inconsistent with level={self.level.value}"
            )
        if not self.detected and self.triggers:
            raise ValueError("A non-detection cannot carry triggers")

    @classmethod
    def none(cls, extractor_errors: Optional[List[str]] = None) -> "CrisisAssessment":
        return cls(
            detected=False,
            level=CrisisLevel.NONE,
            extractor_errors=list(extractor_errors or []),
        )

    @property
    def trigger_names(self) -> List[str]:
        return [t.tag for t in self.triggers]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected": self.detected,
            "level": self.level.value,
            "triggers": self.trigger_names,
            "confidence": round(self.confidence, 3),
            "computed_at": self.computed_at.isoformat(),
        }
