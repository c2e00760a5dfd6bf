"""Risk aggregator - combines signal extractors into one CrisisAssessment.

Architecture:
- Primary extractors: keyword table, structured phrase patterns,
  bag-of-words classifier
- Contributory extractors: absolutist / immediacy modifiers, counted only
  when a primary extractor found something
- Optional user history: escalates an existing detection by one step,
  never creates one

Extractor failures are isolated. If no primary extractor succeeds, the aggregator
fails closed at MEDIUM rather than reporting NONE. Modifiers alone do not
count as a successful pass.
"""
import logging
import time
from dataclasses import replace
from typing import List, Optional, Sequence

from mindwell.shared.errors import ExtractorFailure
from mindwell.shared.models import (
    CrisisAssessment,
    CrisisLevel,
    HistorySummary,
    TriggerTag,
)
from mindwell.shared.utils import hash_text_for_audit
from .classifier import StatisticalClassifier
from .config import RiskWeights, SafetyConfig
from .extractors import (
    KeywordMatcher,
    ModifierExtractor,
    PatternMatcher,
    SignalExtractor,
)

logger = logging.getLogger(__name__)

HISTORY_TRIGGER = "recent_crisis_history"
UNAVAILABLE_TRIGGER = "assessment_unavailable"


def build_default_extractors(
    config: Optional[SafetyConfig] = None,
    weights: Optional[RiskWeights] = None,
) -> List[SignalExtractor]:
    """Standard extractor set, all reading the canonical signal tables."""
    config = config or SafetyConfig()
    weights = weights or RiskWeights()
    extractors: List[SignalExtractor] = [
        KeywordMatcher(weights=weights),
        PatternMatcher(weights=weights),
        ModifierExtractor(weights=weights),
    ]
    if config.classifier_enabled:
        extractors.append(StatisticalClassifier(config=config, weights=weights))
    return extractors


class RiskAggregator:
    """Produces a CrisisAssessment for a single utterance.

    Stateless after construction; safe to share across concurrent turns.
    """

    def __init__(
        self,
        extractors: Optional[Sequence[SignalExtractor]] = None,
        weights: Optional[RiskWeights] = None,
        config: Optional[SafetyConfig] = None,
    ):
        self.config = config or SafetyConfig()
        self.weights = weights or RiskWeights()
        if extractors is None:
            extractors = build_default_extractors(self.config, self.weights)
        self.extractors = list(extractors)

        logger.info(
            "RISK_AGGREGATOR_INITIALIZED",
            extra={
                "pattern_version": self.config.pattern_version,
                "extractors": [e.name for e in self.extractors],
            }
        )

    def assess(
        self,
        text: str,
        history: Optional[HistorySummary] = None,
    ) -> CrisisAssessment:
        """Assess text for self-harm / crisis risk.

        Args:
            text: Raw utterance text
            history: Optional recent-crisis summary for the user

        Returns:
            CrisisAssessment honouring detected == (level != NONE)

        Logs:
            - EXTRACTOR_FAILED: One extractor raised (warning)
            - RISK_ASSESSMENT_FAIL_CLOSED: No primary extractor succeeded (error)
            - RISK_ASSESSMENT_CRISIS: level HIGH (critical)
            - RISK_ASSESSMENT_COMPLETED: Always, on a successful pass
        """
        if not text or not text.strip():
            return CrisisAssessment.none()

        start_time = time.perf_counter()
        primary: List[TriggerTag] = []
        contributory: List[TriggerTag] = []
        errors: List[str] = []
        succeeded = 0

        for extractor in self.extractors:
            try:
                found = extractor.extract(text)
            except Exception as e:
                failure = ExtractorFailure(extractor.name, e)
                errors.append(str(failure))
                logger.warning(
                    "EXTRACTOR_FAILED",
                    extra={
                        "extractor": extractor.name,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )
                continue

            if extractor.contributory:
                contributory.extend(found)
            else:
                succeeded += 1
                primary.extend(found)

        if succeeded == 0:
            return self.apply_history(self.fail_closed(text, errors), history)

        triggers = list(primary)
        if primary:
            triggers.extend(contributory)

        # Rounded so three 0.1 hits compare equal to a 0.3 threshold
        confidence = min(1.0, round(sum(t.weight for t in triggers), 4))
        level = self._determine_level(triggers, confidence)

        detected = level != CrisisLevel.NONE
        assessment = self.apply_history(
            CrisisAssessment(
                detected=detected,
                level=level,
                triggers=triggers if detected else [],
                confidence=confidence if detected else 0.0,
                extractor_errors=errors,
            ),
            history,
        )

        latency_ms = (time.perf_counter() - start_time) * 1000
        if assessment.level == CrisisLevel.HIGH:
            logger.critical(
                "RISK_ASSESSMENT_CRISIS",
                extra={
                    "text_hash": hash_text_for_audit(text),
                    "triggers": assessment.trigger_names,
                    "confidence": assessment.confidence,
                }
            )
        logger.info(
            "RISK_ASSESSMENT_COMPLETED",
            extra={
                "level": assessment.level.value,
                "trigger_count": len(assessment.triggers),
                "confidence": assessment.confidence,
                "extractor_errors": len(errors),
                "latency_ms": latency_ms,
            }
        )
        return assessment

    def apply_history(
        self,
        assessment: CrisisAssessment,
        history: Optional[HistorySummary],
    ) -> CrisisAssessment:
        """Escalate an existing detection by one step if the user has recent crises.

        A non-detection is returned unchanged, so history never originates one.
        """
        if history is None or not history.has_recent_crisis or not assessment.detected:
            return assessment

        escalated = assessment.level.escalate()
        log = logger.critical if escalated == CrisisLevel.HIGH else logger.info
        log(
            "RISK_LEVEL_ESCALATED_BY_HISTORY",
            extra={
                "from_level": assessment.level.value,
                "to_level": escalated.value,
                "recent_crisis_count": history.recent_crisis_count,
                "window_days": history.window_days,
            }
        )
        return replace(
            assessment,
            level=escalated,
            triggers=assessment.triggers + [TriggerTag(
                tag=HISTORY_TRIGGER,
                severity=escalated,
                source="history",
            )],
        )

    def _determine_level(self, triggers: List[TriggerTag], confidence: float) -> CrisisLevel:
        """Map fired triggers and summed confidence to a level.

        Both inputs only grow as triggers are added, so the level is
        monotonic non-decreasing under additional evidence.
        """
        if not triggers:
            return CrisisLevel.NONE
        worst = CrisisLevel.highest(t.severity for t in triggers)
        if worst == CrisisLevel.HIGH or confidence > self.weights.high_confidence_threshold:
            return CrisisLevel.HIGH
        if worst == CrisisLevel.MEDIUM or confidence > self.weights.medium_confidence_threshold:
            return CrisisLevel.MEDIUM
        return CrisisLevel.LOW

    def fail_closed(self, text: str, errors: List[str]) -> CrisisAssessment:
        """MEDIUM assessment used when risk could not be computed."""
        logger.error(
            "RISK_ASSESSMENT_FAIL_CLOSED",
            extra={
                "text_hash": hash_text_for_audit(text),
                "errors": errors,
                "level": CrisisLevel.MEDIUM.value,
            }
        )
        return CrisisAssessment(
            detected=True,
            level=CrisisLevel.MEDIUM,
            triggers=[TriggerTag(
                tag=UNAVAILABLE_TRIGGER,
                severity=CrisisLevel.MEDIUM,
                source="aggregator",
            )],
            confidence=0.0,
            extractor_errors=errors,
        )
