"""NATS transport using nats-py."""

import asyncio
from typing import Any, AsyncIterator

import nats
from nats.aio.client import Client as NATS
from nats.aio.subscription import Subscription as NatsSub
from nats.errors import NoRespondersError
from nats.errors import TimeoutError as NatsTimeoutError

from ..errors import OperationTimeoutError, TransportError
from ..logging_config import get_logger
from .base import InboundMessage

logger = get_logger(__name__)


class NatsSubscription:
    """Adapts a nats-py subscription to the transport's message stream."""

    def __init__(self, subscription: NatsSub, topic: str):
        self._subscription = subscription
        self._topic = topic

    async def __aiter__(self) -> AsyncIterator[InboundMessage]:
        async for msg in self._subscription.messages:
            yield InboundMessage(
                topic=msg.subject,
                data=msg.data,
                reply_to=msg.reply or None,
            )

    async def unsubscribe(self) -> None:
        try:
            await self._subscription.unsubscribe()
        except Exception as e:
            logger.debug("Ignoring unsubscribe failure on %s: %s", self._topic, e)


class NatsTransport:
    """Transport over a NATS server."""

    transport_type = "nats"

    def __init__(self):
        self._nc: NATS | None = None
        self._tasks: list[asyncio.Task] = []
        self._connect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected

    async def connect(self, config: dict[str, Any]) -> None:
        """Connect with nats.connect(**config), e.g. {"servers": [...]}."""
        async with self._connect_lock:
            if self.is_connected:
                return
            try:
                self._nc = await nats.connect(**config)
            except Exception as e:
                self._nc = None
                raise TransportError(
                    f"Failed to connect to NATS: {e}",
                    self.transport_type,
                    {"details": str(e)},
                ) from e
            logger.info("Connected to NATS %s", self._nc.connected_url)

    async def disconnect(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

        if self._nc is not None:
            try:
                await self._nc.drain()
            except Exception as e:
                logger.warning("Error disconnecting from NATS: %s", e)
            self._nc = None

    def register_task(self, task: asyncio.Task) -> None:
        self._tasks.append(task)

    def _require_connection(self, action: str) -> NATS:
        if not self.is_connected:
            raise TransportError(
                f"Cannot {action}: not connected to NATS", self.transport_type
            )
        return self._nc

    async def publish(self, topic: str, data: bytes) -> None:
        nc = self._require_connection("publish")
        try:
            await nc.publish(topic, data)
        except Exception as e:
            raise TransportError(
                f"Failed to publish to topic {topic}: {e}",
                self.transport_type,
                {"topic": topic},
            ) from e

    async def subscribe(
        self, topic: str, queue_group: str | None = None
    ) -> NatsSubscription:
        nc = self._require_connection("subscribe")
        try:
            subscription = await nc.subscribe(topic, queue=queue_group or "")
        except Exception as e:
            raise TransportError(
                f"Failed to subscribe to topic {topic}: {e}",
                self.transport_type,
                {"topic": topic},
            ) from e
        return NatsSubscription(subscription, topic)

    async def request(self, topic: str, data: bytes, timeout: float) -> bytes:
        nc = self._require_connection("send request")
        try:
            msg = await nc.request(topic, data, timeout=timeout)
        except NatsTimeoutError as e:
            raise OperationTimeoutError(f"request to {topic}", timeout) from e
        except NoRespondersError as e:
            raise TransportError(
                f"No responders available for {topic}",
                self.transport_type,
                {"topic": topic},
            ) from e
        except Exception as e:
            raise TransportError(
                f"Request to {topic} failed: {e}",
                self.transport_type,
                {"topic": topic},
            ) from e
        return msg.data
