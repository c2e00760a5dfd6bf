"""Sentiment Service: polarity plus domain indicators.

Usage:
    from mindwell.services.sentiment_service import SentimentAggregator
    assessment = SentimentAggregator().assess("I'm worried about tomorrow")
"""

from .sentiment_analyzer import (
    SentimentAggregator,
    PolarityScorer,
    load_vader_lexicon,
    POSITIVE_KEYWORDS,
    ANXIETY_KEYWORDS,
)

__all__ = [
    "SentimentAggregator",
    "PolarityScorer",
    "load_vader_lexicon",
    "POSITIVE_KEYWORDS",
    "ANXIETY_KEYWORDS",
]
