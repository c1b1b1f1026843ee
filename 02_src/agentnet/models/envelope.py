"""Wire envelopes exchanged over the transport.

Three frame kinds travel on the bus, all JSON:

* task messages ``{"content": ..., "session": {"id": ..., ...}}`` used for
  requests and normal replies; handoff requests add ``"via"``, the networks
  already running the task,
* error replies ``{"error": true, "message": ..., "type": ...}``,
* discovery heartbeats ``{"type": "discovery", "network": ..., ...}``.

``decode_envelope`` tells them apart by their discriminant fields.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Union

from ..errors import AgentNetError, DiscoveryError, ValidationError
from .identity import AgentIdentity, CapabilitySchema

DISCOVERY_TYPE = "discovery"


@dataclass
class TaskMessage:
    """Request or reply carrying content and session context."""

    content: Any
    session: dict[str, Any] = field(default_factory=dict)
    via: list[str] = field(default_factory=list)

    @property
    def session_id(self) -> str | None:
        value = self.session.get("id")
        return str(value) if value is not None else None

    def to_dict(self) -> dict[str, Any]:
        payload = {"content": self.content, "session": self.session}
        if self.via:
            payload["via"] = self.via
        return payload

    def encode(self) -> bytes:
        return json.dumps(self.to_dict(), default=str).encode("utf-8")


@dataclass
class ErrorReply:
    """Structured error sent in place of a normal reply."""

    message: str
    type: str = "Error"

    @classmethod
    def from_exception(cls, error: BaseException) -> "ErrorReply":
        if isinstance(error, AgentNetError):
            reply = error.to_reply()
            return cls(message=reply["message"], type=reply["type"])
        return cls(message=str(error) or type(error).__name__, type=type(error).__name__)

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "message": self.message, "type": self.type}

    def encode(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")


@dataclass
class DiscoveryHeartbeat:
    """Periodic advertisement of an agent's capability schemas."""

    network: str
    agent_name: str
    schemas: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def for_agent(
        cls, identity: AgentIdentity, schemas: Iterable[CapabilitySchema]
    ) -> "DiscoveryHeartbeat":
        return cls(
            network=identity.network,
            agent_name=identity.name,
            schemas=[schema.to_dict() for schema in schemas],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": DISCOVERY_TYPE,
            "network": self.network,
            "agentName": self.agent_name,
            "schemas": self.schemas,
        }

    def encode(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")


Envelope = Union[TaskMessage, ErrorReply, DiscoveryHeartbeat]


def _load(data: bytes | str) -> dict[str, Any]:
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(f"Envelope is not UTF-8: {e}") from e
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Envelope is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ValidationError("Envelope must be a JSON object")
    return payload


def _decode_heartbeat_payload(payload: dict[str, Any]) -> DiscoveryHeartbeat:
    network = payload.get("network")
    agent_name = payload.get("agentName")
    schemas = payload.get("schemas")

    if not isinstance(network, str) or not isinstance(agent_name, str):
        raise DiscoveryError("Discovery heartbeat requires network and agentName")
    if not isinstance(schemas, list):
        raise DiscoveryError("Discovery heartbeat schemas must be a list")
    try:
        AgentIdentity.from_network(network)
    except ValidationError as e:
        raise DiscoveryError(e.message, {"network": network}) from e

    return DiscoveryHeartbeat(network=network, agent_name=agent_name, schemas=schemas)


def decode_envelope(data: bytes | str) -> Envelope:
    """Decode any bus frame into its envelope type."""
    payload = _load(data)

    if payload.get("type") == DISCOVERY_TYPE:
        return _decode_heartbeat_payload(payload)

    if payload.get("error") is True:
        return ErrorReply(
            message=str(payload.get("message", "")),
            type=str(payload.get("type", "Error")),
        )

    if "content" in payload:
        session = payload.get("session") or {}
        if not isinstance(session, dict):
            raise ValidationError("Envelope session must be an object")
        via = payload.get("via") or []
        if not isinstance(via, list) or not all(isinstance(n, str) for n in via):
            raise ValidationError("Envelope via must be a list of networks")
        return TaskMessage(content=payload["content"], session=session, via=via)

    raise ValidationError("Unrecognised envelope", [", ".join(sorted(payload))])


def decode_heartbeat(data: bytes | str) -> DiscoveryHeartbeat:
    """Decode a frame that must be a discovery heartbeat."""
    try:
        envelope = decode_envelope(data)
    except ValidationError as e:
        raise DiscoveryError(f"Malformed discovery message: {e.message}") from e
    if not isinstance(envelope, DiscoveryHeartbeat):
        raise DiscoveryError("Not a discovery message")
    return envelope
