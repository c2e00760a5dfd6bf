"""Signal extractors - stateless scorers over raw text.

Each extractor inspects text once and returns zero or more TriggerTags.
Patterns are compiled at construction so a scan is a single linear pass
per compiled expression, whatever the length of the input.
"""
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, List, Optional, Tuple

from mindwell.shared.models import CrisisLevel, TriggerTag
from .config import (
    ABSOLUTIST_WORDS,
    CRISIS_KEYWORDS,
    CRISIS_PATTERNS,
    IMMEDIACY_WORDS,
    RiskWeights,
)

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"[a-z']+")


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens (apostrophes kept, so "can't" stays whole)."""
    return _TOKEN_PATTERN.findall(text.lower())


class SignalExtractor(ABC):
    """Base class for risk signal sources.

    A contributory extractor only adds weight to evidence found by a primary
    extractor; on its own it never produces a detection.
    """

    name: str = "base"
    contributory: bool = False

    @abstractmethod
    def extract(self, text: str) -> List[TriggerTag]:
        """Return the triggers found in text, in order of first occurrence."""
        pass


class KeywordMatcher(SignalExtractor):
    """Case-insensitive substring match against the severity keyword table."""

    name = "keyword"

    def __init__(
        self,
        keywords: Optional[Dict[CrisisLevel, FrozenSet[str]]] = None,
        weights: Optional[RiskWeights] = None,
    ):
        self.weights = weights or RiskWeights()
        table = keywords or CRISIS_KEYWORDS

        self._severity: Dict[str, CrisisLevel] = {}
        for level, words in table.items():
            for word in words:
                current = self._severity.get(word)
                if current is None or level.rank > current.rank:
                    self._severity[word] = level

        # Zero-width lookahead so overlapping keywords are all visited in one scan.
        # Longest alternatives first: at a given offset the longest keyword wins.
        alternatives = sorted(self._severity, key=len, reverse=True)
        self._pattern = re.compile(
            "(?=(" + "|".join(re.escape(word) for word in alternatives) + "))"
        )

    def extract(self, text: str) -> List[TriggerTag]:
        lowered = text.lower().replace("’", "'")
        seen: List[str] = []
        for match in self._pattern.finditer(lowered):
            word = match.group(1)
            if word not in seen:
                seen.append(word)

        return [
            TriggerTag(
                tag=word,
                severity=self._severity[word],
                source=self.name,
                weight=self.weights.keyword_hit,
            )
            for word in seen
        ]


class PatternMatcher(SignalExtractor):
    """Regex phrase detection for structured crisis statements."""

    name = "pattern"

    def __init__(
        self,
        patterns: Optional[List[Tuple[str, CrisisLevel, str]]] = None,
        weights: Optional[RiskWeights] = None,
    ):
        self.weights = weights or RiskWeights()
        self._patterns = [
            (tag, severity, re.compile(expr, re.IGNORECASE))
            for tag, severity, expr in (patterns or CRISIS_PATTERNS)
        ]

    def extract(self, text: str) -> List[TriggerTag]:
        # Curly apostrophes are common from mobile keyboards
        normalized = text.replace("’", "'")
        hits: List[Tuple[int, TriggerTag]] = []
        for tag, severity, pattern in self._patterns:
            match = pattern.search(normalized)
            if match:
                hits.append((
                    match.start(),
                    TriggerTag(
                        tag=tag,
                        severity=severity,
                        source=self.name,
                        weight=self.weights.pattern_hit,
                    ),
                ))
        hits.sort(key=lambda item: item[0])
        return [trigger for _, trigger in hits]


class ModifierExtractor(SignalExtractor):
    """Absolutist and immediacy language.

    Modifiers carry LOW severity; their weight is what moves a borderline
    message across the confidence thresholds.
    """

    name = "modifier"
    contributory = True

    def __init__(
        self,
        absolutist_words: Optional[FrozenSet[str]] = None,
        immediacy_words: Optional[FrozenSet[str]] = None,
        weights: Optional[RiskWeights] = None,
    ):
        self.weights = weights or RiskWeights()
        self.absolutist_words = absolutist_words or ABSOLUTIST_WORDS
        self.immediacy_words = immediacy_words or IMMEDIACY_WORDS

    def extract(self, text: str) -> List[TriggerTag]:
        triggers: List[TriggerTag] = []
        seen = set()
        for token in tokenize(text):
            if token in seen:
                continue
            if token in self.absolutist_words:
                seen.add(token)
                triggers.append(TriggerTag(
                    tag=f"absolutist_{token}",
                    severity=CrisisLevel.LOW,
                    source=self.name,
                    weight=self.weights.absolutist_hit,
                ))
            elif token in self.immediacy_words:
                seen.add(token)
                triggers.append(TriggerTag(
                    tag=f"immediate_{token}",
                    severity=CrisisLevel.LOW,
                    source=self.name,
                    weight=self.weights.immediacy_hit,
                ))
        return triggers
