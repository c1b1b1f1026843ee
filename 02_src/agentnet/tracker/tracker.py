"""Tracker implementation for creating TraceEvents."""

import inspect
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol, Union

from ..logging_config import get_logger
from ..models import TraceEvent
from ..storage import IStorage

logger = get_logger(__name__)

ALL_EVENTS = "*"

TraceHook = Callable[[TraceEvent], Union[None, Awaitable[None]]]


class ITracker(Protocol):
    """Creating TraceEvents for executor and handler activity."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent, save to Storage and notify hooks."""
        ...

    def on(self, event_type: str, hook: TraceHook) -> None:
        """Register a hook for one event type, or "*" for all."""
        ...


class Tracker:
    """Creates TraceEvents, persists them and fans them out to hooks."""

    def __init__(self, storage: IStorage | None = None):
        self._storage = storage
        self._hooks: dict[str, list[TraceHook]] = {}

    def on(self, event_type: str, hook: TraceHook) -> None:
        self._hooks.setdefault(event_type, []).append(hook)

    async def track(self, event_type: str, actor: str, data: dict[str, Any]) -> None:
        """Create TraceEvent and save to Storage."""
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )

        if self._storage is not None:
            try:
                await self._storage.save_trace_event(trace_event)
            except Exception as e:
                logger.error("Failed to save trace event %s: %s", event_type, e)

        hooks = self._hooks.get(event_type, []) + self._hooks.get(ALL_EVENTS, [])
        for hook in hooks:
            try:
                result = hook(trace_event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "Trace hook for %s failed: %s",
                    event_type,
                    e,
                    exc_info=True,
                    extra={"context": {"actor": actor}},
                )
