"""Bag-of-words risk-bucket classifier.

Multinomial naive Bayes over word counts, trained at construction on the
seed corpus in config.py. It is the least specific signal source: it only
emits a trigger for the risk buckets listed in CLASSIFIER_BUCKET_SEVERITY
and only above a minimum posterior probability.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from sklearn.feature_extraction.text import CountVectorizer
from sklearn.naive_bayes import MultinomialNB
from sklearn.pipeline import Pipeline

from mindwell.shared.models import CrisisLevel, TriggerTag
from .config import (
    CLASSIFIER_BUCKET_SEVERITY,
    CLASSIFIER_SEED_CORPUS,
    RiskWeights,
    SafetyConfig,
)
from .extractors import SignalExtractor

logger = logging.getLogger(__name__)


class StatisticalClassifier(SignalExtractor):
    """Pluggable statistical scorer backed by scikit-learn."""

    name = "classifier"

    def __init__(
        self,
        corpus: Optional[Sequence[Tuple[str, str]]] = None,
        config: Optional[SafetyConfig] = None,
        weights: Optional[RiskWeights] = None,
        bucket_severity: Optional[Dict[str, CrisisLevel]] = None,
    ):
        self.config = config or SafetyConfig()
        self.weights = weights or RiskWeights()
        self.bucket_severity = bucket_severity or CLASSIFIER_BUCKET_SEVERITY

        corpus = list(corpus or CLASSIFIER_SEED_CORPUS)
        texts = [text for text, _ in corpus]
        labels = [label for _, label in corpus]

        self._pipeline = Pipeline([
            ("counts", CountVectorizer(lowercase=True, ngram_range=(1, 2))),
            ("nb", MultinomialNB(alpha=0.5)),
        ])
        self._pipeline.fit(texts, labels)

        logger.info(
            "RISK_CLASSIFIER_TRAINED",
            extra={
                "documents": len(texts),
                "buckets": sorted(set(labels)),
                "min_probability": self.config.classifier_min_probability,
            }
        )

    def classify(self, text: str) -> Tuple[str, float]:
        """Return the most probable bucket and its posterior probability."""
        probabilities = self._pipeline.predict_proba([text])[0]
        classes: List[str] = list(self._pipeline.classes_)
        best = max(range(len(classes)), key=lambda i: probabilities[i])
        return classes[best], float(probabilities[best])

    def extract(self, text: str) -> List[TriggerTag]:
        bucket, probability = self.classify(text)
        severity = self.bucket_severity.get(bucket)

        logger.debug(
            "RISK_CLASSIFIER_RESULT",
            extra={"bucket": bucket, "probability": round(probability, 3)}
        )

        if severity is None or probability < self.config.classifier_min_probability:
            return []
        return [TriggerTag(
            tag=f"classifier_{bucket}",
            severity=severity,
            source=self.name,
            weight=self.weights.classifier_hit,
        )]
