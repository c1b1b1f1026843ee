"""Executor-facing capability models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping

from .identity import CapabilitySchema

if TYPE_CHECKING:
    from ..session.conversation import Conversation


class CapabilityKind(str, Enum):
    """Where a capability executes."""

    TOOL = "tool"
    HANDOFF = "handoff"


@dataclass
class RunContext:
    """Live state of one task handed to capability functions."""

    session_id: str
    state: dict[str, Any] = field(default_factory=dict)
    conversation: "Conversation | None" = None
    # Networks in the handoff chain that led here, this agent last
    via: tuple[str, ...] = ()


CapabilityFunction = Callable[[RunContext, dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class Capability:
    """A callable entry of the capability map."""

    schema: CapabilitySchema
    function: CapabilityFunction
    kind: CapabilityKind = CapabilityKind.TOOL

    @property
    def name(self) -> str:
        return self.schema.name


CapabilityMap = Mapping[str, Capability]
