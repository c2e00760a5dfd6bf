"""Recommendation Service: recommendations and emergency resources per turn."""

from .recommender import RecommendationEngine, CRISIS_LINES, IMMEDIATE_ACTIONS

__all__ = ["RecommendationEngine", "CRISIS_LINES", "IMMEDIATE_ACTIONS"]
