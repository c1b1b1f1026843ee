"""Conversation entry models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EntryType(str, Enum):
    """Kinds of conversation entries."""

    USER_INPUT = "user_input"
    MODEL_RESPONSE = "model_response"
    FUNCTION_CALL = "function_call"
    FUNCTION_RESULT = "function_result"


@dataclass
class ConversationEntry:
    """A single provider-specific message plus its metadata."""

    content: Any
    type: EntryType
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "metadata": {
                "type": self.type.value,
                "timestamp": self.timestamp.isoformat(),
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationEntry":
        metadata = data.get("metadata", {})
        timestamp = metadata.get("timestamp")
        return cls(
            content=data.get("content"),
            type=EntryType(metadata.get("type", EntryType.USER_INPUT.value)),
            timestamp=(
                datetime.fromisoformat(timestamp)
                if timestamp
                else datetime.now(timezone.utc)
            ),
        )
