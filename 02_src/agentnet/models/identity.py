"""Agent identity and capability schema models."""

from dataclasses import dataclass, field
from typing import Any

from ..errors import ValidationError


@dataclass(frozen=True)
class AgentIdentity:
    """Addressable identity of an agent on the bus."""

    namespace: str
    name: str

    def __post_init__(self) -> None:
        errors = []
        for label, value in (("namespace", self.namespace), ("name", self.name)):
            if not isinstance(value, str) or not value.strip():
                errors.append(f"{label} must be a non-empty string")
            elif "." in value:
                errors.append(f"{label} must not contain '.'")
        if errors:
            raise ValidationError("Invalid agent identity", errors)

    @property
    def network(self) -> str:
        """Unique bus address: namespace.name."""
        return f"{self.namespace}.{self.name}"

    @classmethod
    def from_network(cls, network: str) -> "AgentIdentity":
        parts = network.split(".")
        if len(parts) != 2:
            raise ValidationError(f"Invalid network format: {network!r}")
        return cls(namespace=parts[0], name=parts[1])


@dataclass(frozen=True)
class CapabilitySchema:
    """A named, typed function-call descriptor advertised for discovery."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CapabilitySchema":
        if not isinstance(data, dict):
            raise ValidationError("Capability schema must be an object")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError("Capability schema must have a name", [repr(data)[:100]])
        parameters = data.get("parameters") or {"type": "object", "properties": {}}
        if not isinstance(parameters, dict):
            raise ValidationError(f"Parameters of capability {name!r} must be an object")
        return cls(
            name=name,
            description=data.get("description") or "",
            parameters=parameters,
        )
