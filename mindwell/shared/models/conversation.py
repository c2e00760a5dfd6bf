"""Utterance and conversation-turn domain models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from mindwell.shared.errors import InvalidUtterance

DEFAULT_SESSION = "default"


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Utterance:
    """A single inbound user message. Immutable once received."""
    text: str
    user_id: str
    session_id: Optional[str] = None

    def validate(self, max_chars: int) -> None:
        """Check the caller contract.

        Raises:
            InvalidUtterance: If text is not a string, exceeds max_chars,
                or user_id is missing.
        """
        if not isinstance(self.text, str):
            raise InvalidUtterance("Utterance text must be a string")
        if len(self.text) > max_chars:
            raise InvalidUtterance(
                f"Utterance text exceeds {max_chars} characters ({len(self.text)})"
            )
        if not isinstance(self.user_id, str) or not self.user_id:
            raise InvalidUtterance("Utterance requires a non-empty user_id")
        if self.session_id is not None and not isinstance(self.session_id, str):
            raise InvalidUtterance("session_id must be a string when present")

    @property
    def context_key(self) -> Tuple[str, str]:
        return (self.user_id, self.session_id or DEFAULT_SESSION)


@dataclass(frozen=True)
class ConversationTurn:
    """One message in a conversation context."""
    role: Role
    text: str
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "text": self.text, "at": self.at.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        return cls(
            role=Role(data["role"]),
            text=data["text"],
            at=datetime.fromisoformat(data["at"]),
        )
