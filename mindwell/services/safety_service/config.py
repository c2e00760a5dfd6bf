"""Canonical crisis signal tables and tunable risk weights.

Every signal extractor reads its vocabulary from this module, so keyword,
pattern and classifier evidence cannot drift into different severity
buckets. Bump SIGNAL_TABLE_VERSION whenever a table changes.
"""
import os
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple

from mindwell.shared.models import CrisisLevel

SIGNAL_TABLE_VERSION = "2026.10.19-1"


@dataclass(frozen=True)
class RiskWeights:
    """Additive weights and level thresholds.

    These are tuning parameters, not contracts.
    """
    keyword_hit: float = 0.1
    pattern_hit: float = 0.15
    absolutist_hit: float = 0.05
    immediacy_hit: float = 0.1
    classifier_hit: float = 0.1
    high_confidence_threshold: float = 0.3
    medium_confidence_threshold: float = 0.2
    history_window_days: int = 7

    @classmethod
    def from_env(cls) -> "RiskWeights":
        defaults = cls()
        return cls(
            keyword_hit=float(os.getenv("RISK_KEYWORD_WEIGHT", defaults.keyword_hit)),
            pattern_hit=float(os.getenv("RISK_PATTERN_WEIGHT", defaults.pattern_hit)),
            absolutist_hit=float(os.getenv("RISK_ABSOLUTIST_WEIGHT", defaults.absolutist_hit)),
            immediacy_hit=float(os.getenv("RISK_IMMEDIACY_WEIGHT", defaults.immediacy_hit)),
            classifier_hit=float(os.getenv("RISK_CLASSIFIER_WEIGHT", defaults.classifier_hit)),
            high_confidence_threshold=float(
                os.getenv("RISK_HIGH_THRESHOLD", defaults.high_confidence_threshold)
            ),
            medium_confidence_threshold=float(
                os.getenv("RISK_MEDIUM_THRESHOLD", defaults.medium_confidence_threshold)
            ),
            history_window_days=int(
                os.getenv("RISK_HISTORY_WINDOW_DAYS", defaults.history_window_days)
            ),
        )


@dataclass(frozen=True)
class SafetyConfig:
    """Configuration for the signal extractors."""
    pattern_version: str = SIGNAL_TABLE_VERSION
    classifier_enabled: bool = True
    # Minimum posterior before the classifier is allowed to emit a trigger
    classifier_min_probability: float = 0.6

    @classmethod
    def from_env(cls) -> "SafetyConfig":
        return cls(
            classifier_enabled=os.getenv("RISK_CLASSIFIER_ENABLED", "true").lower() == "true",
            classifier_min_probability=float(os.getenv("RISK_CLASSIFIER_MIN_PROBABILITY", "0.6")),
        )


# Case-insensitive substring matches, bucketed by severity
CRISIS_KEYWORDS: Dict[CrisisLevel, FrozenSet[str]] = {
    CrisisLevel.HIGH: frozenset({
        "suicide",
        "suicidal",
        "kill myself",
        "end my life",
        "want to die",
        "better off dead",
        "end it all",
        "overdose",
        "tired of living",
        "done with life",
        "hang myself",
        "unalive",
    }),
    CrisisLevel.MEDIUM: frozenset({
        "self-harm",
        "self harm",
        "hurt myself",
        "harm myself",
        "cut myself",
        "pills",
        "hopeless",
        "worthless",
        "nobody cares",
        "can't go on",
        "give up",
        "no point",
        "trapped",
        "hate myself",
    }),
    CrisisLevel.LOW: frozenset({
        "depressed",
        "lonely",
        "empty inside",
        "feel numb",
        "numb inside",
        "can't cope",
        "falling apart",
    }),
}

# Structured phrases: (tag, severity, regex). Lower false-positive rate than keywords.
CRISIS_PATTERNS: List[Tuple[str, CrisisLevel, str]] = [
    ("pattern_intent_self_harm", CrisisLevel.HIGH,
     r"\bi\s+(?:want\s+to|will|am\s+going\s+to|'m\s+going\s+to)\s+(?:kill|hurt|harm)\s+myself\b"),
    ("pattern_going_to_die", CrisisLevel.HIGH,
     r"\bi(?:'m|\s+am)\s+(?:going|planning)\s+to\s+(?:die|kill\s+myself|end\s+it)\b"),
    ("pattern_planning_harm", CrisisLevel.HIGH,
     r"\bplanning\s+to\s+(?:hurt|harm|kill)\b"),
    ("pattern_have_a_plan", CrisisLevel.HIGH,
     r"\bhave\s+a\s+plan\s+to\b"),
    ("pattern_tonight_i_will", CrisisLevel.HIGH,
     r"\btonight\s+i\s+will\b"),
    ("pattern_nothing_to_live_for", CrisisLevel.HIGH,
     r"\bhave\s+nothing\s+to\s+live\s+for\b"),
    ("pattern_life_not_worth_living", CrisisLevel.MEDIUM,
     r"\blife\s+(?:isn'?t|is\s+not)\s+worth\s+living\b"),
    ("pattern_nobody_would_miss_me", CrisisLevel.MEDIUM,
     r"\b(?:nobody|no\s+one)\s+would\s+miss\s+me\b"),
    ("pattern_cant_take_it", CrisisLevel.MEDIUM,
     r"\bcan'?t\s+take\s+it\s+any\s*more\b"),
    ("pattern_ready_to_give_up", CrisisLevel.MEDIUM,
     r"\bready\s+to\s+give\s+up\b"),
    ("pattern_everything_hopeless", CrisisLevel.MEDIUM,
     r"\beverything\s+is\s+hopeless\b"),
    ("pattern_feeling_down", CrisisLevel.LOW,
     r"\bfeeling\s+really\s+(?:sad|down|depressed)\b"),
]

# Whole-word modifiers; each hit adds weight and its own trigger tag
ABSOLUTIST_WORDS: FrozenSet[str] = frozenset({
    "always", "never", "everything", "nothing", "everyone", "nobody",
})

IMMEDIACY_WORDS: FrozenSet[str] = frozenset({
    "tonight", "today", "now", "soon", "planning",
})

# Seed corpus for the bag-of-words classifier
CLASSIFIER_SEED_CORPUS: List[Tuple[str, str]] = [
    ("I want to kill myself", "high_risk"),
    ("I'm planning to end my life", "high_risk"),
    ("I have pills and I want to take them all", "high_risk"),
    ("Nobody would miss me if I'm gone", "high_risk"),
    ("I can't take this pain anymore", "high_risk"),
    ("I am going to end it tonight", "high_risk"),
    ("I hate my life", "medium_risk"),
    ("I want to hurt myself", "medium_risk"),
    ("Everything is hopeless", "medium_risk"),
    ("I feel worthless and alone", "medium_risk"),
    ("I don't see the point in anything anymore", "medium_risk"),
    ("I'm feeling really sad today", "low_risk"),
    ("I'm stressed about school", "low_risk"),
    ("I'm having trouble sleeping", "low_risk"),
    ("I feel lonely lately", "low_risk"),
    ("How are you today?", "no_risk"),
    ("I had a good day at work", "no_risk"),
    ("What's the weather like?", "no_risk"),
    ("I had a great day, feeling awesome", "no_risk"),
    ("I'm happy and excited about the weekend", "no_risk"),
    ("Thanks, that really helped", "no_risk"),
    ("Can you tell me a fun fact", "no_risk"),
    ("I went for a walk with my friends", "no_risk"),
    ("Feeling grateful and proud of myself", "no_risk"),
]

# Classifier buckets that may emit a trigger, and the severity they carry.
# The classifier is the least specific signal, so it never reports HIGH.
CLASSIFIER_BUCKET_SEVERITY: Dict[str, CrisisLevel] = {
    "high_risk": CrisisLevel.MEDIUM,
    "medium_risk": CrisisLevel.LOW,
}
