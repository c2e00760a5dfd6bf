"""Prompt composer - builds the instruction payload for a language model.

Pure and deterministic: the same inputs always produce the same payload.
The payload is a system block (persona, safety rules, assessments) and a
user block (trailing context plus the current message). When over the
character budget, the oldest context turns are dropped first; the current
message and the crisis directive are never cut.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from mindwell.shared.models import (
    ConversationTurn,
    CrisisAssessment,
    SentimentAssessment,
)

logger = logging.getLogger(__name__)

DEFAULT_CHAR_BUDGET = 12_000
CONTEXT_TURNS = 3

PERSONA = """You are a compassionate AI mental health companion designed to support young people (ages 13-25).

CORE PRINCIPLES:
- Be empathetic, non-judgmental, and genuinely caring
- Use age-appropriate language that feels natural and relatable
- Validate both physical and emotional experiences
- Show genuine concern for their wellbeing
- Encourage professional help when appropriate
- Never provide medical diagnoses or specific treatment advice
- Focus on active listening, emotional support, and practical comfort

COMMUNICATION STYLE:
- Warm, authentic, and understanding; avoid sounding robotic or clinical
- Use "I" statements and reflective listening
- Ask caring follow-up questions to show interest
- Acknowledge the connection between physical symptoms and mental wellness
- Be conversational but meaningful (2-4 sentences)
- Match their emotional tone appropriately

SAFETY PROTOCOLS:
- If you detect crisis language, prioritize safety and provide resources
- Always encourage professional support for serious mental health concerns
- Maintain appropriate boundaries as an AI companion"""

CRISIS_DIRECTIVE = """CRISIS DETECTED - LEVEL: {level}
- Confidence: {confidence:.1f}%
- Triggers detected: {triggers}

IMMEDIATE RESPONSE REQUIREMENTS (these override the communication style above):
- Acknowledge their pain and validate their feelings
- Express genuine concern for their safety
- Provide immediate crisis resources (988 Suicide & Crisis Lifeline, Crisis Text Line: text HOME to 741741)
- Encourage professional help urgently
- Be direct but compassionate about seeking help
- Do NOT minimize their feelings or give false reassurance"""

NO_CRISIS_NOTICE = """- No crisis indicators detected
- Focus on supportive conversation and emotional validation"""


@dataclass(frozen=True)
class PromptPayload:
    """Instruction payload handed to every provider tier.

    Also carries the assessments so the static fallback can select a reply
    from the same payload.
    """
    system: str
    user: str
    utterance: str
    crisis: CrisisAssessment
    sentiment: SentimentAssessment
    context_turns_included: int = 0

    @property
    def char_count(self) -> int:
        return len(self.system) + len(self.user)

    def as_messages(self) -> List[Dict[str, Any]]:
        """Chat-completions style message list."""
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]

    def as_text(self) -> str:
        """Single prompt string for text-generation endpoints."""
        return f"{self.system}\n\n{self.user}"


class PromptComposer:
    """Deterministic payload builder."""

    def __init__(self, char_budget: int = DEFAULT_CHAR_BUDGET, context_turns: int = CONTEXT_TURNS):
        self.char_budget = char_budget
        self.context_turns = context_turns

    def compose(
        self,
        utterance: str,
        context: Sequence[ConversationTurn],
        crisis: CrisisAssessment,
        sentiment: SentimentAssessment,
    ) -> PromptPayload:
        system = self._system_block(crisis, sentiment)
        turns = list(context)[-self.context_turns:] if self.context_turns > 0 else []

        user = self._user_block(utterance, turns)
        while turns and len(system) + len(user) > self.char_budget:
            turns = turns[1:]
            user = self._user_block(utterance, turns)

        payload = PromptPayload(
            system=system,
            user=user,
            utterance=utterance,
            crisis=crisis,
            sentiment=sentiment,
            context_turns_included=len(turns),
        )

        if payload.char_count > self.char_budget:
            logger.warning(
                "PROMPT_OVER_BUDGET",
                extra={"char_count": payload.char_count, "char_budget": self.char_budget}
            )
        return payload

    def _system_block(self, crisis: CrisisAssessment, sentiment: SentimentAssessment) -> str:
        lines = [PERSONA, "", "CURRENT CONTEXT:"]
        lines.append(
            f"- User's current emotional state: {sentiment.label.value} "
            f"(score: {sentiment.score:g})"
        )
        if sentiment.indicators:
            tokens = ", ".join(i.token for i in sentiment.indicators)
            lines.append(f"- Key emotional indicators: {tokens}")
        lines.append("")

        if crisis.detected:
            lines.append(CRISIS_DIRECTIVE.format(
                level=crisis.level.value.upper(),
                confidence=crisis.confidence * 100,
                triggers=", ".join(crisis.trigger_names) or "none recorded",
            ))
        else:
            lines.append(NO_CRISIS_NOTICE)
        return "\n".join(lines)

    def _user_block(self, utterance: str, turns: Sequence[ConversationTurn]) -> str:
        parts: List[str] = []
        if turns:
            parts.append("Previous conversation context:")
            parts.extend(f"{t.role.value}: {t.text}" for t in turns)
            parts.append("")
        parts.append(f'Current message: "{utterance}"')
        parts.append("")
        parts.append("Provide a supportive, empathetic response:")
        return "\n".join(parts)
