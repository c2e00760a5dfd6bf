"""Safety Service: crisis risk assessment.

Every utterance is scored here before anything is sent to a language
model. All extractors read the canonical signal tables in config.py.

Components:
- config.py: Signal tables, RiskWeights and SafetyConfig
- extractors.py: Keyword, pattern and modifier extractors
- classifier.py: Bag-of-words naive Bayes classifier (scikit-learn)
- risk_aggregator.py: RiskAggregator combining extractors and history
- history_repository.py: Recent crisis history (in-memory / PostgreSQL)

Usage:
    from mindwell.services.safety_service import RiskAggregator
    aggregator = RiskAggregator()
    assessment = aggregator.assess("I can't take it anymore")
"""

from .config import (
    RiskWeights,
    SafetyConfig,
    SIGNAL_TABLE_VERSION,
    CRISIS_KEYWORDS,
    CRISIS_PATTERNS,
)
from .extractors import SignalExtractor, KeywordMatcher, PatternMatcher, ModifierExtractor
from .classifier import StatisticalClassifier
from .risk_aggregator import RiskAggregator, build_default_extractors
from .history_repository import (
    RiskHistory,
    InMemoryRiskHistory,
    CrisisHistoryRepository,
    CrisisEventRecord,
)

__all__ = [
    "RiskWeights",
    "SafetyConfig",
    "SIGNAL_TABLE_VERSION",
    "CRISIS_KEYWORDS",
    "CRISIS_PATTERNS",
    "SignalExtractor",
    "KeywordMatcher",
    "PatternMatcher",
    "ModifierExtractor",
    "StatisticalClassifier",
    "RiskAggregator",
    "build_default_extractors",
    "RiskHistory",
    "InMemoryRiskHistory",
    "CrisisHistoryRepository",
    "CrisisEventRecord",
]
