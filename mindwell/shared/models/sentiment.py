"""Sentiment assessment domain models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class SentimentLabel(Enum):
    """Five-bucket sentiment classification."""
    VERY_NEGATIVE = "very_negative"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    VERY_POSITIVE = "very_positive"

    @classmethod
    def for_score(cls, score: float) -> "SentimentLabel":
        """Deterministic bucketing of a sentiment score."""
        if score > 2:
            return cls.VERY_POSITIVE
        if score > 0:
            return cls.POSITIVE
        if score < -2:
            return cls.VERY_NEGATIVE
        if score < 0:
            return cls.NEGATIVE
        return cls.NEUTRAL

    @property
    def is_negative(self) -> bool:
        return self in (SentimentLabel.NEGATIVE, SentimentLabel.VERY_NEGATIVE)

    @property
    def is_positive(self) -> bool:
        return self in (SentimentLabel.POSITIVE, SentimentLabel.VERY_POSITIVE)


class IndicatorType(Enum):
    POSITIVE = "positive"
    ANXIETY = "anxiety"


@dataclass(frozen=True)
class SentimentIndicator:
    """A domain keyword that adjusted the raw polarity score."""
    type: IndicatorType
    token: str


@dataclass(frozen=True)
class SentimentAssessment:
    """Result of sentiment analysis for a single utterance."""
    score: float
    label: SentimentLabel
    indicators: List[SentimentIndicator] = field(default_factory=list)
    comparative: float = 0.0
    positive_tokens: List[str] = field(default_factory=list)
    negative_tokens: List[str] = field(default_factory=list)

    def __post_init__(self):
        expected = SentimentLabel.for_score(self.score)
        if self.label != expected:
            raise ValueError(
                f"Label {self.label.value} does not match score {self.score} "
                f"(expected {expected.value})"
            )

    @classmethod
    def neutral(cls) -> "SentimentAssessment":
        return cls(score=0.0, label=SentimentLabel.NEUTRAL)

    @property
    def has_anxiety(self) -> bool:
        return any(i.type == IndicatorType.ANXIETY for i in self.indicators)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": round(self.score, 3),
            "label": self.label.value,
            "comparative": round(self.comparative, 3),
            "indicators": [
                {"type": i.type.value, "token": i.token} for i in self.indicators
            ],
            "positive": self.positive_tokens,
            "negative": self.negative_tokens,
        }
