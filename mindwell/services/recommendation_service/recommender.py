"""Recommendation engine.

Maps the crisis and sentiment assessments of one turn to user-facing
recommendations. Rules are independent; every rule that applies
contributes one recommendation, and the list is ordered by priority
(high first), keeping rule order within a priority.
"""
import logging
from typing import List, Optional

from mindwell.shared.models import (
    CrisisAssessment,
    CrisisLine,
    EmergencyResources,
    Priority,
    Recommendation,
    SentimentAssessment,
    WebResource,
)

logger = logging.getLogger(__name__)

CRISIS_LINES = [
    CrisisLine(
        name="National Suicide Prevention Lifeline",
        number="988",
        description="24/7 free and confidential support",
    ),
    CrisisLine(
        name="Crisis Text Line",
        number="Text HOME to 741741",
        description="24/7 text-based crisis support",
    ),
]

IMMEDIATE_ACTIONS = [
    "Reach out to a trusted friend, family member, or counselor",
    "Go to your nearest emergency room",
    "Call 911 if you're in immediate danger",
    "Remove any means of self-harm from your environment",
]

WEB_RESOURCES = [
    WebResource(
        name="National Institute of Mental Health",
        url="https://www.nimh.nih.gov/health/find-help",
    ),
    WebResource(
        name="Mental Health America",
        url="https://www.mhanational.org/finding-help",
    ),
]


def _immediate_action() -> Recommendation:
    return Recommendation(
        type="immediate_action",
        priority=Priority.HIGH,
        message="Please consider reaching out to a crisis counselor or trusted person immediately.",
        resources=["988 Suicide & Crisis Lifeline", "Crisis Text Line: Text HOME to 741741"],
    )


def _mood_support() -> Recommendation:
    return Recommendation(
        type="mood_support",
        priority=Priority.MEDIUM,
        message="It sounds like you're going through a difficult time. Consider these coping strategies:",
        suggestions=[
            "Deep breathing exercises",
            "Talking to a trusted friend or family member",
            "Engaging in a favorite activity",
            "Professional counseling if feelings persist",
        ],
    )


def _anxiety_management() -> Recommendation:
    return Recommendation(
        type="anxiety_management",
        priority=Priority.MEDIUM,
        message="For anxiety management, try these techniques:",
        suggestions=[
            "4-7-8 breathing technique",
            "Grounding exercises (5-4-3-2-1 method)",
            "Progressive muscle relaxation",
            "Regular exercise and sleep schedule",
        ],
    )


def _positive_reinforcement() -> Recommendation:
    return Recommendation(
        type="positive_reinforcement",
        priority=Priority.LOW,
        message="It's great to hear you're feeling positive! Keep nurturing your mental health:",
        suggestions=[
            "Continue activities that bring you joy",
            "Practice gratitude",
            "Maintain your support connections",
            "Consider helping others when you feel able",
        ],
    )


class RecommendationEngine:
    """Stateless rule set over (crisis, sentiment)."""

    def recommend(
        self,
        crisis: CrisisAssessment,
        sentiment: SentimentAssessment,
    ) -> List[Recommendation]:
        """Build the ordered recommendation list for one turn.

        Args:
            crisis: Risk assessment of the utterance
            sentiment: Sentiment assessment of the utterance

        Returns:
            Recommendations, highest priority first (may be empty)
        """
        recommendations: List[Recommendation] = []

        if crisis.detected:
            recommendations.append(_immediate_action())
        if sentiment.label.is_negative:
            recommendations.append(_mood_support())
        if sentiment.has_anxiety:
            recommendations.append(_anxiety_management())
        if sentiment.label.is_positive:
            recommendations.append(_positive_reinforcement())

        recommendations.sort(key=lambda r: r.priority.rank, reverse=True)

        logger.debug(
            "RECOMMENDATIONS_GENERATED",
            extra={
                "types": [r.type for r in recommendations],
                "crisis_detected": crisis.detected,
                "sentiment_label": sentiment.label.value,
            }
        )
        return recommendations

    def emergency_resources(self, crisis: CrisisAssessment) -> Optional[EmergencyResources]:
        """Fixed emergency bundle, or None when no risk was detected."""
        if not crisis.detected:
            return None
        return EmergencyResources(
            crisis_lines=list(CRISIS_LINES),
            immediate_actions=list(IMMEDIATE_ACTIONS),
            resources=list(WEB_RESOURCES),
        )
