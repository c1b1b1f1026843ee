"""In-process transport backed by a shared pub/sub broker."""

import asyncio
import itertools
import uuid
from typing import Any, AsyncIterator

from ..errors import OperationTimeoutError, TransportError
from ..logging_config import get_logger
from .base import InboundMessage

logger = get_logger(__name__)

_CLOSED = object()


class MemorySubscription:
    """Queue-backed subscription on a MemoryBroker topic."""

    def __init__(self, broker: "MemoryBroker", topic: str, queue_group: str | None):
        self._broker = broker
        self.topic = topic
        self.queue_group = queue_group
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, message: InboundMessage) -> None:
        if not self._closed:
            self._queue.put_nowait(message)

    async def __aiter__(self) -> AsyncIterator[InboundMessage]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._broker.remove(self)
        self._queue.put_nowait(_CLOSED)


class MemoryBroker:
    """In-memory topic broker with fan-out and queue-group delivery."""

    def __init__(self):
        self._subscribers: dict[str, list[MemorySubscription]] = {}
        self._cursors: dict[tuple[str, str], itertools.count] = {}

    def add(self, subscription: MemorySubscription) -> None:
        self._subscribers.setdefault(subscription.topic, []).append(subscription)

    def remove(self, subscription: MemorySubscription) -> None:
        subscribers = self._subscribers.get(subscription.topic, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._subscribers.pop(subscription.topic, None)

    def has_subscribers(self, topic: str) -> bool:
        return bool(self._subscribers.get(topic))

    def publish(self, topic: str, data: bytes, reply_to: str | None = None) -> int:
        """Deliver to every plain subscriber and one member per queue group."""
        message = InboundMessage(topic=topic, data=data, reply_to=reply_to)
        subscribers = list(self._subscribers.get(topic, []))

        groups: dict[str, list[MemorySubscription]] = {}
        delivered = 0
        for subscription in subscribers:
            if subscription.queue_group:
                groups.setdefault(subscription.queue_group, []).append(subscription)
            else:
                subscription.deliver(message)
                delivered += 1

        for group, members in groups.items():
            cursor = self._cursors.setdefault((topic, group), itertools.count())
            members[next(cursor) % len(members)].deliver(message)
            delivered += 1

        return delivered


_default_broker = MemoryBroker()


def default_broker() -> MemoryBroker:
    """Process-wide broker used when no broker is configured."""
    return _default_broker


class MemoryTransport:
    """Transport over a MemoryBroker shared by agents in one process."""

    transport_type = "memory"

    def __init__(self):
        self._broker: MemoryBroker | None = None
        self._subscriptions: list[MemorySubscription] = []
        self._tasks: list[asyncio.Task] = []
        self._connect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._broker is not None

    async def connect(self, config: dict[str, Any]) -> None:
        """Attach to config["broker"] or the process-wide broker."""
        async with self._connect_lock:
            if self._broker is not None:
                return
            broker = config.get("broker", _default_broker)
            if not isinstance(broker, MemoryBroker):
                raise TransportError(
                    "Memory transport broker must be a MemoryBroker",
                    self.transport_type,
                )
            self._broker = broker
            logger.info("Memory transport connected")

    async def disconnect(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

        for subscription in list(self._subscriptions):
            await subscription.unsubscribe()
        self._subscriptions.clear()
        self._broker = None

    def register_task(self, task: asyncio.Task) -> None:
        self._tasks.append(task)

    def _require_broker(self, action: str) -> MemoryBroker:
        if self._broker is None:
            raise TransportError(
                f"Cannot {action}: memory transport not connected", self.transport_type
            )
        return self._broker

    async def publish(self, topic: str, data: bytes) -> None:
        self._require_broker("publish").publish(topic, data)

    async def subscribe(
        self, topic: str, queue_group: str | None = None
    ) -> MemorySubscription:
        broker = self._require_broker("subscribe")
        subscription = MemorySubscription(broker, topic, queue_group)
        broker.add(subscription)
        self._subscriptions = [s for s in self._subscriptions if not s.closed]
        self._subscriptions.append(subscription)
        return subscription

    async def request(self, topic: str, data: bytes, timeout: float) -> bytes:
        broker = self._require_broker("send request")
        if not broker.has_subscribers(topic):
            raise TransportError(
                f"No responders available for {topic}",
                self.transport_type,
                {"topic": topic},
            )

        inbox = await self.subscribe(f"_INBOX.{uuid.uuid4().hex}")
        try:
            broker.publish(topic, data, reply_to=inbox.topic)

            async def first_reply() -> bytes:
                async for message in inbox:
                    return message.data
                raise TransportError(
                    f"Inbox closed before reply from {topic}", self.transport_type
                )

            try:
                return await asyncio.wait_for(first_reply(), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise OperationTimeoutError(f"request to {topic}", timeout) from e
        finally:
            await inbox.unsubscribe()
