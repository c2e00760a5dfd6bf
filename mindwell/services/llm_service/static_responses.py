"""Static fallback responses used when no provider tier answers.

Rule table, first match wins:
    physical symptoms -> very_negative sentiment -> anxiety -> low mood
    -> stress -> loneliness -> positive sentiment -> default

When a crisis is detected the emergency script is always the opening of
the reply, verbatim, followed by the matched topic reply if any.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Tuple

from mindwell.shared.models import CrisisAssessment, SentimentAssessment, SentimentLabel

logger = logging.getLogger(__name__)

CRISIS_SCRIPT = (
    "I'm very concerned about what you've shared. Please know that you're not alone "
    "and help is available. I strongly encourage you to reach out to a crisis helpline "
    "immediately:\n\n"
    "Crisis Resources:\n"
    "• 988 (Suicide & Crisis Lifeline) - Call or text\n"
    "• Crisis Text Line: Text HOME to 741741\n"
    "• Your local emergency services: 911\n\n"
    "Your life has value and there are people who want to help you through this "
    "difficult time. Please reach out now."
)

DEFAULT_REPLY = (
    "I'm here to listen and support you, and I appreciate you reaching out to me. "
    "That takes courage. While I'm having some technical difficulties right now, I want "
    "you to know that I care about how you're doing. Could you tell me more about what's "
    "going on for you today? Sometimes just talking through what's on our minds can help "
    "us feel a little better. If you're in crisis or need immediate help, please don't "
    "hesitate to contact 988 or your local emergency services."
)

Predicate = Callable[[str, SentimentAssessment], bool]


def _mentions(*phrases: str) -> Predicate:
    def check(lowered: str, sentiment: SentimentAssessment) -> bool:
        return any(p in lowered for p in phrases)
    return check


def _label_is(*labels: SentimentLabel) -> Predicate:
    def check(lowered: str, sentiment: SentimentAssessment) -> bool:
        return sentiment.label in labels
    return check


def _anxiety(lowered: str, sentiment: SentimentAssessment) -> bool:
    return "anxious" in lowered or "anxiety" in lowered or sentiment.has_anxiety


TOPIC_RULES: List[Tuple[str, Predicate, str]] = [
    ("headache", _mentions("headache", "head hurts", "migraine"),
     "I'm sorry you're dealing with a headache - that can really affect your whole day "
     "and mood. Physical pain like headaches can be so draining. Have you been under more "
     "stress lately, or noticed if anything specific tends to trigger them? Sometimes "
     "headaches can be connected to stress, dehydration, or lack of sleep. While I can't "
     "give medical advice, gentle things like staying hydrated, resting in a quiet space, "
     "or some light stretching might help provide comfort."),
    ("tired", _mentions("tired", "exhausted", "fatigue"),
     "Being tired and exhausted can make everything feel harder to handle. It sounds like "
     "you're really drained right now. Sometimes our bodies are telling us we need rest, "
     "but other times fatigue can be connected to stress or our emotional state. Are you "
     "able to get enough sleep, or is something keeping you from feeling rested? Taking "
     "care of your basic needs - sleep, food, water - can sometimes make a big difference "
     "in how we feel overall."),
    ("unwell", _mentions("sick", "not feeling well", "unwell"),
     "I'm sorry you're not feeling well - that's never fun to deal with. When we're "
     "physically unwell, it can also affect our mood and mental state. Are you feeling "
     "sick physically, emotionally, or maybe both? Sometimes our bodies and minds are more "
     "connected than we realize. I hope you're able to take some time to rest and take "
     "care of yourself."),
    ("very_negative", _label_is(SentimentLabel.VERY_NEGATIVE),
     "I can sense that you're going through something really tough right now. Those "
     "difficult feelings are completely valid, and I want you to know that it's okay to "
     "not be okay sometimes. Even though I'm having some technical difficulties, please "
     "know that support is available to you. If you're in crisis, please reach out to 988 "
     "or your local crisis line. Otherwise, talking to a trusted friend, family member, or "
     "counselor can really help during hard times."),
    ("anxiety", _anxiety,
     "I hear that you're feeling anxious, and that can be really overwhelming. Anxiety "
     "affects both our minds and bodies. Sometimes simple breathing exercises can help - "
     "try breathing in slowly for 4 counts, holding for 7, then breathing out for 8. "
     "Grounding yourself can also help - try noticing 5 things you can see around you, 4 "
     "things you can touch, 3 things you can hear. What's been making you feel most "
     "anxious lately?"),
    ("low_mood", _mentions("depressed", "depression", "sad"),
     "Thank you for sharing that you're feeling down. Depression can make everything feel "
     "heavier and more difficult. What you're experiencing is real and valid. Many people "
     "find that talking through their feelings helps, even when it feels hard to put them "
     "into words. Can you tell me more about what's been weighing on you? If these "
     "feelings are persistent or getting worse, please consider reaching out to a mental "
     "health professional who can provide proper support."),
    ("stress", _mentions("stress", "overwhelmed"),
     "It sounds like you're dealing with a lot of stress right now, and feeling "
     "overwhelmed is completely understandable when there's too much going on. Sometimes "
     "stress can even show up as physical symptoms like headaches or feeling tired. Let's "
     "talk about what's causing you the most stress - what feels like the biggest "
     "challenge you're facing right now? Sometimes breaking things down into smaller "
     "pieces can make them feel more manageable."),
    ("lonely", _mentions("lonely", "alone"),
     "Loneliness can be really painful to experience, and I appreciate you being brave "
     "enough to reach out and share that with me. Even when we feel completely alone, "
     "there are people who care and want to help. Sometimes talking through these "
     "feelings can help us understand them better and find ways to connect. What's been "
     "making you feel most lonely? Is it feeling disconnected from others, or maybe "
     "feeling like no one understands what you're going through?"),
    ("positive", _label_is(SentimentLabel.POSITIVE, SentimentLabel.VERY_POSITIVE),
     "It's really nice to hear some positivity from you! I appreciate you sharing that "
     "with me. Even though I'm having some technical difficulties right now, I'm glad you "
     "reached out. How can I best support you today? Is there something specific you'd "
     "like to talk about, or are you just checking in?"),
]


@dataclass(frozen=True)
class StaticReply:
    text: str
    rule: str


class StaticResponder:
    """Deterministic, non-AI response bank. Always returns non-empty text."""

    def __init__(self, rules: List[Tuple[str, Predicate, str]] = TOPIC_RULES):
        self.rules = rules

    def respond(
        self,
        text: str,
        crisis: CrisisAssessment,
        sentiment: SentimentAssessment,
    ) -> StaticReply:
        rule, reply = self._match(text or "", sentiment)
        logger.debug(
            "STATIC_RESPONSE_SELECTED",
            extra={"rule": rule, "crisis_detected": crisis.detected}
        )

        if crisis.detected:
            parts = [CRISIS_SCRIPT]
            if rule != "default":
                parts.append(reply)
            return StaticReply(text="\n\n".join(parts), rule=f"crisis+{rule}")
        return StaticReply(text=reply, rule=rule)

    def _match(self, text: str, sentiment: SentimentAssessment) -> Tuple[str, str]:
        lowered = text.lower()
        for name, predicate, reply in self.rules:
            if predicate(lowered, sentiment):
                return name, reply
        return "default", DEFAULT_REPLY
