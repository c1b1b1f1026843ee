"""Session state persisted per agent and session id."""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import AgentIdentity
from ..storage import IStorage
from .conversation import Conversation

logger = get_logger(__name__)

PRIVATE_PREFIX = "_"


def public_state(state: Mapping[str, Any]) -> dict[str, Any]:
    """State with private keys removed, safe to send to another agent."""
    return {k: v for k, v in state.items() if not str(k).startswith(PRIVATE_PREFIX)}


def merge_state(state: dict[str, Any], delta: Mapping[str, Any]) -> dict[str, Any]:
    """Merge delta into state in place. Last write wins; ``id`` is never copied."""
    for key, value in delta.items():
        if key == "id":
            continue
        state[key] = value
    return state


@dataclass
class Session:
    """Live session of one agent: state plus conversation log."""

    id: str
    state: dict[str, Any] = field(default_factory=dict)
    conversation: Conversation = field(default_factory=Conversation)

    def public_state(self) -> dict[str, Any]:
        return public_state(self.state)

    def to_envelope_session(self) -> dict[str, Any]:
        """Session object carried by task envelopes."""
        return {**self.public_state(), "id": self.id}


class SessionManager:
    """Loads and persists sessions for one agent."""

    def __init__(self, storage: IStorage, identity: AgentIdentity, max_history: int = 50):
        self._storage = storage
        self._identity = identity
        self._max_history = max_history

    def key(self, session_id: str) -> str:
        """Composite storage key namespace.agentName.sessionId."""
        return f"{self._identity.network}.{session_id}"

    async def load(
        self,
        session_id: str,
        caller_context: Mapping[str, Any] | None = None,
    ) -> Session:
        """
        Read the persisted session and overlay the caller's context.

        A missing record yields empty state and conversation. Caller keys
        other than ``id`` override persisted ones.
        """
        if not session_id:
            raise ValidationError("Session id is required")

        raw = await self._storage.get(self.key(session_id))
        state: dict[str, Any] = {}
        conversation = Conversation()

        if raw:
            try:
                record = json.loads(raw)
                state = dict(record.get("state") or {})
                conversation = Conversation.from_list(record.get("conversation") or [])
            except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
                logger.warning(
                    "Discarding unreadable session record %s: %s",
                    self.key(session_id),
                    e,
                )
                state = {}
                conversation = Conversation()

        merge_state(state, caller_context or {})
        return Session(id=session_id, state=state, conversation=conversation)

    async def dump(self, session: Session) -> None:
        """Trim the conversation to max_history and persist the session."""
        session.conversation.trim(self._max_history)
        record = {
            "conversation": session.conversation.to_list(),
            "state": session.state,
        }
        await self._storage.set(self.key(session.id), json.dumps(record, default=str))

    async def clear(self, session_id: str) -> None:
        await self._storage.delete(self.key(session_id))
