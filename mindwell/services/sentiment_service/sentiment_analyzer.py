"""Sentiment aggregator for chat turns.

Two layers:
1. PolarityScorer: sum of token valences from the NLTK VADER lexicon
2. Domain indicators: positive-affect words (+1 each) and anxiety words
   (-0.5 each), matched as case-insensitive substrings

If the lexicon resource cannot be loaded the polarity layer contributes 0
and the domain layer still applies. Both layers are pure after
construction; identical text always yields an identical assessment.
"""
import logging
import re
from typing import Dict, List, Optional, Tuple

import nltk
from nltk.sentiment.vader import SentimentIntensityAnalyzer

from mindwell.shared.models import (
    IndicatorType,
    SentimentAssessment,
    SentimentIndicator,
    SentimentLabel,
)

logger = logging.getLogger(__name__)

POSITIVE_KEYWORDS: Tuple[str, ...] = (
    "happy", "good", "better", "great", "fine", "well", "excited",
    "hopeful", "grateful", "proud", "accomplished", "content", "peaceful",
)

ANXIETY_KEYWORDS: Tuple[str, ...] = (
    "anxious", "worried", "panic", "scared", "frightened", "nervous",
    "overwhelmed", "stressed", "tense", "on edge", "racing thoughts",
)

POSITIVE_DELTA = 1.0
ANXIETY_DELTA = -0.5

_TOKEN_PATTERN = re.compile(r"[a-z']+")

_lexicon_cache: Optional[Dict[str, float]] = None
_lexicon_warning_logged = False


def load_vader_lexicon(allow_download: bool = True) -> Dict[str, float]:
    """Load the VADER token-valence lexicon once per process.

    Returns an empty lexicon (and logs SENTIMENT_LEXICON_UNAVAILABLE once)
    when the resource is missing and cannot be fetched.
    """
    global _lexicon_cache, _lexicon_warning_logged
    if _lexicon_cache is not None:
        return _lexicon_cache

    try:
        _lexicon_cache = dict(SentimentIntensityAnalyzer().lexicon)
    except LookupError:
        if allow_download:
            nltk.download("vader_lexicon", quiet=True)
        try:
            _lexicon_cache = dict(SentimentIntensityAnalyzer().lexicon)
        except LookupError as e:
            if not _lexicon_warning_logged:
                logger.warning(
                    "SENTIMENT_LEXICON_UNAVAILABLE",
                    extra={"resource": "vader_lexicon", "error": str(e)[:200]}
                )
                _lexicon_warning_logged = True
            return {}

    logger.info("SENTIMENT_LEXICON_LOADED", extra={"entries": len(_lexicon_cache)})
    return _lexicon_cache


class PolarityScorer:
    """Token-level positive/negative scoring."""

    def __init__(self, lexicon: Optional[Dict[str, float]] = None, allow_download: bool = True):
        """
        Args:
            lexicon: Token -> valence map. Defaults to the VADER lexicon.
            allow_download: Fetch the VADER resource if it is missing
        """
        self.lexicon = lexicon if lexicon is not None else load_vader_lexicon(allow_download)

    @property
    def available(self) -> bool:
        return bool(self.lexicon)

    def score(self, text: str) -> Tuple[float, float, List[str], List[str]]:
        """Return (polarity, comparative, positive_tokens, negative_tokens)."""
        tokens = _TOKEN_PATTERN.findall(text.lower())
        if not tokens:
            return 0.0, 0.0, [], []

        polarity = 0.0
        positive: List[str] = []
        negative: List[str] = []
        for token in tokens:
            valence = self.lexicon.get(token, 0.0)
            if valence > 0:
                positive.append(token)
            elif valence < 0:
                negative.append(token)
            polarity += valence

        return polarity, polarity / len(tokens), positive, negative


class SentimentAggregator:
    """Combines polarity with domain indicators into a SentimentAssessment."""

    def __init__(
        self,
        scorer: Optional[PolarityScorer] = None,
        positive_keywords: Tuple[str, ...] = POSITIVE_KEYWORDS,
        anxiety_keywords: Tuple[str, ...] = ANXIETY_KEYWORDS,
    ):
        self.scorer = scorer or PolarityScorer()
        self.positive_keywords = positive_keywords
        self.anxiety_keywords = anxiety_keywords

    def assess(self, text: str) -> SentimentAssessment:
        """Assess sentiment of text. Never raises on string input."""
        if not text or not text.strip():
            return SentimentAssessment.neutral()

        polarity, comparative, positive_tokens, negative_tokens = self.scorer.score(text)

        lowered = text.lower()
        indicators: List[SentimentIndicator] = []
        adjustment = 0.0
        for word in self.positive_keywords:
            if word in lowered:
                adjustment += POSITIVE_DELTA
                indicators.append(SentimentIndicator(IndicatorType.POSITIVE, word))
        for word in self.anxiety_keywords:
            if word in lowered:
                adjustment += ANXIETY_DELTA
                indicators.append(SentimentIndicator(IndicatorType.ANXIETY, word))

        score = round(polarity + adjustment, 4)
        label = SentimentLabel.for_score(score)

        logger.debug(
            "SENTIMENT_ASSESSED",
            extra={
                "label": label.value,
                "score": score,
                "indicator_count": len(indicators),
                "lexicon_available": self.scorer.available,
            }
        )

        return SentimentAssessment(
            score=score,
            label=label,
            indicators=indicators,
            comparative=round(comparative, 4),
            positive_tokens=positive_tokens,
            negative_tokens=negative_tokens,
        )
