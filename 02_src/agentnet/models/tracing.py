"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single observability event emitted by an agent."""

    id: str
    event_type: str  # e.g. "run", "maxRunsReached", "taskCompleted"
    actor: str  # network of the emitting agent
    data: dict  # self-contained data for display
    timestamp: datetime
