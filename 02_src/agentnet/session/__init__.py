"""Session and conversation continuity."""

from .conversation import Conversation
from .session import (
    PRIVATE_PREFIX,
    Session,
    SessionManager,
    merge_state,
    public_state,
)

__all__ = [
    "Conversation",
    "PRIVATE_PREFIX",
    "Session",
    "SessionManager",
    "merge_state",
    "public_state",
]
