"""Tests for RiskAggregator - crisis detection must never fail open.

Level assertions use an aggregator without the statistical classifier so
that they depend only on the fixed signal tables.
"""
import pytest

from mindwell.shared.models import CrisisLevel, HistorySummary, TriggerTag
from mindwell.shared.utils import configure_pii_salt
from mindwell.services.safety_service.extractors import (
    KeywordMatcher,
    ModifierExtractor,
    PatternMatcher,
    SignalExtractor,
)
from mindwell.services.safety_service.risk_aggregator import (
    HISTORY_TRIGGER,
    UNAVAILABLE_TRIGGER,
    RiskAggregator,
)


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def aggregator():
    return RiskAggregator(extractors=[KeywordMatcher(), PatternMatcher(), ModifierExtractor()])


class ExplodingExtractor(SignalExtractor):
    name = "exploding"

    def extract(self, text):
        raise RuntimeError("model file missing")


class FixedExtractor(SignalExtractor):
    name = "fixed"

    def __init__(self, severity, weight=0.0):
        self.severity = severity
        self.weight = weight

    def extract(self, text):
        return [TriggerTag(tag="fixed", severity=self.severity, source=self.name, weight=self.weight)]


class TestNoRisk:
    """Messages that must not be flagged."""

    def test_benign_message(self, aggregator):
        result = aggregator.assess("I had a great day, feeling awesome!")

        assert result.detected is False
        assert result.level == CrisisLevel.NONE
        assert result.triggers == []
        assert result.confidence == 0.0

    def test_benign_message_default_extractors(self):
        """Full default extractor set, classifier included."""
        result = RiskAggregator().assess("I had a great day, feeling awesome!")

        assert result.detected is False
        assert result.level == CrisisLevel.NONE

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_or_whitespace(self, aggregator, text):
        result = aggregator.assess(text)

        assert result.detected is False
        assert result.level == CrisisLevel.NONE
        assert result.confidence == 0.0

    def test_modifiers_alone_never_detect(self, aggregator):
        """Absolutist / immediacy words only strengthen other evidence."""
        result = aggregator.assess("I always walk my dog today")

        assert result.detected is False
        assert result.triggers == []

    @pytest.mark.parametrize("text", [
        "What's the phone number for my school?",
        "Can you give me the numbers for the bus timetable?",
    ])
    def test_everyday_words_containing_keywords(self, aggregator, text):
        result = aggregator.assess(text)

        assert result.detected is False
        assert result.triggers == []

    def test_numb_phrase_still_detected(self, aggregator):
        result = aggregator.assess("Lately I just feel numb")

        assert result.level == CrisisLevel.LOW
        assert result.trigger_names == ["feel numb"]

    def test_very_long_text(self, aggregator):
        result = aggregator.assess("word " * 100_000)

        assert result.level == CrisisLevel.NONE


class TestLevels:
    """Level determination from trigger severity and confidence."""

    def test_kill_myself_tonight_is_high(self, aggregator):
        result = aggregator.assess("I want to kill myself tonight")

        assert result.detected is True
        assert result.level == CrisisLevel.HIGH
        assert "kill myself" in result.trigger_names
        assert "pattern_intent_self_harm" in result.trigger_names
        assert "immediate_tonight" in result.trigger_names

    def test_kill_myself_tonight_default_extractors(self):
        result = RiskAggregator().assess("I want to kill myself tonight")

        assert result.level == CrisisLevel.HIGH

    def test_medium_keyword(self, aggregator):
        result = aggregator.assess("I feel hopeless")

        assert result.level == CrisisLevel.MEDIUM
        assert result.confidence == pytest.approx(0.1)

    def test_low_keyword(self, aggregator):
        result = aggregator.assess("I feel so lonely")

        assert result.level == CrisisLevel.LOW
        assert result.trigger_names == ["lonely"]

    def test_modifier_adds_weight_to_primary_evidence(self, aggregator):
        result = aggregator.assess("I feel hopeless, nothing will change")

        assert result.trigger_names == ["hopeless", "absolutist_nothing"]
        assert result.confidence == pytest.approx(0.15)

    def test_confidence_threshold_promotes_low_triggers(self, aggregator):
        """Three LOW keywords sum to 0.3: above the medium threshold only."""
        result = aggregator.assess("I'm depressed and lonely and I feel numb")

        assert result.confidence == pytest.approx(0.3)
        assert result.level == CrisisLevel.MEDIUM

    def test_confidence_above_high_threshold(self, aggregator):
        result = aggregator.assess("worthless, trapped, hopeless, nobody cares")

        assert result.confidence > 0.3
        assert result.level == CrisisLevel.HIGH

    def test_confidence_clamped_to_one(self):
        aggregator = RiskAggregator(extractors=[
            FixedExtractor(CrisisLevel.LOW, weight=0.8),
            FixedExtractor(CrisisLevel.LOW, weight=0.8),
        ])

        result = aggregator.assess("anything")

        assert result.confidence == 1.0

    def test_adding_high_keyword_never_lowers_level(self, aggregator):
        base = aggregator.assess("I feel hopeless")
        more = aggregator.assess("I feel hopeless and suicidal")

        assert base.level == CrisisLevel.MEDIUM
        assert more.level.rank >= base.level.rank
        assert more.level == CrisisLevel.HIGH


class TestHistoryEscalation:
    """History escalates an existing detection by one step only."""

    def test_low_escalates_to_medium(self, aggregator):
        history = HistorySummary(recent_crisis_count=2, window_days=7)

        result = aggregator.assess("I feel so lonely", history=history)

        assert result.level == CrisisLevel.MEDIUM
        assert result.trigger_names[-1] == HISTORY_TRIGGER

    def test_medium_escalates_to_high(self, aggregator):
        result = aggregator.assess("I feel hopeless", history=HistorySummary(1))

        assert result.level == CrisisLevel.HIGH

    def test_high_stays_high(self, aggregator):
        result = aggregator.assess("I want to die", history=HistorySummary(3))

        assert result.level == CrisisLevel.HIGH

    def test_history_never_creates_detection(self, aggregator):
        result = aggregator.assess("What a nice afternoon", history=HistorySummary(5))

        assert result.detected is False
        assert result.triggers == []

    def test_no_recent_events_no_escalation(self, aggregator):
        result = aggregator.assess("I feel so lonely", history=HistorySummary(0))

        assert result.level == CrisisLevel.LOW

    def test_apply_history_to_finished_assessment(self, aggregator):
        """Escalation can be applied after the text pass has finished."""
        base = aggregator.assess("I feel hopeless")

        escalated = aggregator.apply_history(base, HistorySummary(recent_crisis_count=1))

        assert base.level == CrisisLevel.MEDIUM
        assert escalated.level == CrisisLevel.HIGH
        assert escalated.trigger_names == base.trigger_names + [HISTORY_TRIGGER]
        assert escalated.confidence == base.confidence

    def test_apply_history_leaves_non_detection(self, aggregator):
        base = aggregator.assess("What a nice afternoon")

        assert aggregator.apply_history(base, HistorySummary(4)) is base
        assert aggregator.apply_history(base, None) is base


class TestExtractorFailures:
    """One failing extractor is isolated; all failing fails closed."""

    def test_single_failure_is_isolated(self):
        aggregator = RiskAggregator(extractors=[ExplodingExtractor(), KeywordMatcher()])

        result = aggregator.assess("I feel hopeless")

        assert result.level == CrisisLevel.MEDIUM
        assert len(result.extractor_errors) == 1
        assert "exploding" in result.extractor_errors[0]

    def test_single_failure_benign_text(self):
        aggregator = RiskAggregator(extractors=[ExplodingExtractor(), KeywordMatcher()])

        result = aggregator.assess("hello there")

        assert result.detected is False
        assert result.extractor_errors

    def test_all_failures_fail_closed_at_medium(self):
        aggregator = RiskAggregator(extractors=[ExplodingExtractor(), ExplodingExtractor()])

        result = aggregator.assess("hello there")

        assert result.detected is True
        assert result.level == CrisisLevel.MEDIUM
        assert result.trigger_names == [UNAVAILABLE_TRIGGER]
        assert len(result.extractor_errors) == 2

    def test_modifiers_alone_do_not_count_as_success(self):
        """Every primary extractor failing still fails closed."""
        aggregator = RiskAggregator(extractors=[
            ExplodingExtractor(), ExplodingExtractor(), ModifierExtractor(),
        ])

        result = aggregator.assess("I want to kill myself tonight")

        assert result.detected is True
        assert result.level == CrisisLevel.MEDIUM
        assert result.trigger_names == [UNAVAILABLE_TRIGGER]
        assert len(result.extractor_errors) == 2


class TestAssessmentInvariant:
    """detected == False implies level NONE and no triggers."""

    @pytest.mark.parametrize("text", [
        "",
        "hello",
        "I always do this now",
        "I feel hopeless",
        "I want to kill myself tonight",
        "nobody would miss me",
    ])
    def test_invariant_holds(self, aggregator, text):
        result = aggregator.assess(text)

        assert result.detected == (result.level != CrisisLevel.NONE)
        if not result.detected:
            assert result.triggers == []
