"""Core data models for AgentNet."""

from .capabilities import (
    Capability,
    CapabilityFunction,
    CapabilityKind,
    CapabilityMap,
    RunContext,
)
from .conversation import ConversationEntry, EntryType
from .envelope import (
    DiscoveryHeartbeat,
    Envelope,
    ErrorReply,
    TaskMessage,
    decode_envelope,
    decode_heartbeat,
)
from .identity import AgentIdentity, CapabilitySchema
from .tracing import TraceEvent

__all__ = [
    # Identity
    "AgentIdentity",
    "CapabilitySchema",
    # Capabilities
    "Capability",
    "CapabilityFunction",
    "CapabilityKind",
    "CapabilityMap",
    "RunContext",
    # Conversation
    "ConversationEntry",
    "EntryType",
    # Envelopes
    "TaskMessage",
    "ErrorReply",
    "DiscoveryHeartbeat",
    "Envelope",
    "decode_envelope",
    "decode_heartbeat",
    # Tracing
    "TraceEvent",
]
