"""Redis transport built on Redis Streams.

Every topic is a stream. A queue group maps to a consumer group so members
compete for entries; a plain subscription gets a private consumer group
starting at the stream tail, which gives fan-out delivery. Requests carry a
reply stream name and wait on a private inbox stream. Replies never create
a stream: an inbox deleted after its request gave up stays deleted.
"""

import asyncio
import uuid
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError

from ..errors import OperationTimeoutError, TransportError
from ..logging_config import get_logger
from .base import InboundMessage

logger = get_logger(__name__)

STREAM_MAXLEN = 1000
READ_BLOCK_MS = 1000
# Sleep between reads when blocking reads are disabled
POLL_INTERVAL = 0.02
INBOX_PREFIX = "_INBOX."
INBOX_TTL_SECONDS = 300


class RedisSubscription:
    """Consumer-group reader over one stream."""

    def __init__(
        self,
        transport: "RedisTransport",
        client: aioredis.Redis,
        topic: str,
        group: str,
        private: bool,
        block_ms: int | None = READ_BLOCK_MS,
    ):
        self._transport = transport
        self._client = client
        self._topic = topic
        self._group = group
        self._private = private
        self._block_ms = block_ms
        self._consumer = uuid.uuid4().hex
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[InboundMessage]:
        while not self._closed:
            try:
                response = await self._client.xreadgroup(
                    self._group,
                    self._consumer,
                    streams={self._topic: ">"},
                    count=1,
                    block=self._block_ms,
                )
            except RedisError as e:
                if self._closed:
                    return
                await self._transport.check_connection()
                raise TransportError(
                    f"Failed to read from stream {self._topic}: {e}",
                    "redis",
                    {"topic": self._topic},
                ) from e

            if not response and self._block_ms is None:
                await asyncio.sleep(POLL_INTERVAL)
                continue

            for _stream, entries in response or []:
                for entry_id, fields in entries:
                    await self._client.xack(self._topic, self._group, entry_id)
                    reply_to = fields.get(b"reply_to")
                    yield InboundMessage(
                        topic=self._topic,
                        data=fields.get(b"data", b""),
                        reply_to=reply_to.decode("utf-8") if reply_to else None,
                    )

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._private:
            try:
                await self._client.xgroup_destroy(self._topic, self._group)
            except RedisError as e:
                logger.debug("Ignoring group cleanup failure on %s: %s", self._topic, e)


class RedisTransport:
    """
    Transport over a Redis server.

    Pass an existing client to share a connection pool. read_block_ms=None
    switches subscriptions to short non-blocking polls.
    """

    transport_type = "redis"

    def __init__(
        self,
        client: aioredis.Redis | None = None,
        read_block_ms: int | None = READ_BLOCK_MS,
    ):
        self._shared_client = client
        self._read_block_ms = read_block_ms
        self._client: aioredis.Redis | None = None
        self._tasks: list[asyncio.Task] = []
        self._subscriptions: list[RedisSubscription] = []
        self._connect_lock = asyncio.Lock()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._connected

    async def connect(self, config: dict[str, Any]) -> None:
        """
        Connect using config["url"] or Redis(**config) keyword arguments.
        A client passed to the constructor is used as is and config is ignored.
        """
        async with self._connect_lock:
            if self.is_connected:
                return
            client = self._shared_client
            if client is None:
                client = _build_client(config)
            try:
                await client.ping()
            except RedisError as e:
                if client is not self._shared_client:
                    await client.aclose()
                raise TransportError(
                    f"Failed to connect to Redis: {e}",
                    self.transport_type,
                    {"details": str(e)},
                ) from e
            self._client = client
            self._connected = True
            logger.info("Connected to Redis")

    async def disconnect(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

        for subscription in self._subscriptions:
            await subscription.unsubscribe()
        self._subscriptions.clear()

        if self._client is not None and self._client is not self._shared_client:
            try:
                await self._client.aclose()
            except RedisError as e:
                logger.warning("Error disconnecting from Redis: %s", e)
        self._client = None
        self._connected = False

    def register_task(self, task: asyncio.Task) -> None:
        self._tasks.append(task)

    async def check_connection(self) -> bool:
        """Ping the server and record whether the connection survived."""
        if self._client is None:
            return False
        try:
            await self._client.ping()
        except RedisError as e:
            logger.error("Redis connection lost: %s", e)
            self._connected = False
        return self._connected

    def _require_client(self, action: str) -> aioredis.Redis:
        if not self.is_connected:
            raise TransportError(
                f"Cannot {action}: not connected to Redis", self.transport_type
            )
        return self._client

    async def _add(self, topic: str, data: bytes, reply_to: str | None = None) -> None:
        client = self._require_client("publish")
        fields = {"data": data}
        if reply_to:
            fields["reply_to"] = reply_to
        try:
            entry_id = await client.xadd(
                topic,
                fields,
                maxlen=STREAM_MAXLEN,
                approximate=True,
                nomkstream=topic.startswith(INBOX_PREFIX),
            )
        except RedisError as e:
            if isinstance(e, RedisConnectionError):
                await self.check_connection()
            raise TransportError(
                f"Failed to publish to topic {topic}: {e}",
                self.transport_type,
                {"topic": topic},
            ) from e
        if entry_id is None:
            logger.debug("Dropped reply to %s: inbox no longer exists", topic)

    async def publish(self, topic: str, data: bytes) -> None:
        await self._add(topic, data)

    async def subscribe(
        self, topic: str, queue_group: str | None = None
    ) -> RedisSubscription:
        client = self._require_client("subscribe")
        private = queue_group is None
        group = queue_group or f"sub-{uuid.uuid4().hex}"
        try:
            await client.xgroup_create(topic, group, id="$", mkstream=True)
        except ResponseError as e:
            # Another member of the queue group created it first.
            if "BUSYGROUP" not in str(e):
                raise TransportError(
                    f"Failed to subscribe to topic {topic}: {e}",
                    self.transport_type,
                    {"topic": topic},
                ) from e
        except RedisError as e:
            raise TransportError(
                f"Failed to subscribe to topic {topic}: {e}",
                self.transport_type,
                {"topic": topic},
            ) from e

        subscription = RedisSubscription(
            self, client, topic, group, private, block_ms=self._read_block_ms
        )
        self._subscriptions.append(subscription)
        return subscription

    async def request(self, topic: str, data: bytes, timeout: float) -> bytes:
        client = self._require_client("send request")
        inbox = f"{INBOX_PREFIX}{uuid.uuid4().hex}"
        subscription = await self.subscribe(inbox)
        try:
            await client.expire(inbox, INBOX_TTL_SECONDS)
            await self._add(topic, data, reply_to=inbox)

            async def first_reply() -> bytes:
                async for message in subscription:
                    return message.data
                raise TransportError(
                    f"Inbox closed before reply from {topic}", self.transport_type
                )

            try:
                return await asyncio.wait_for(first_reply(), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise OperationTimeoutError(f"request to {topic}", timeout) from e
        finally:
            await subscription.unsubscribe()
            self._subscriptions.remove(subscription)
            try:
                await client.delete(inbox)
            except RedisError as e:
                logger.debug("Ignoring inbox cleanup failure: %s", e)


def _build_client(config: dict[str, Any]) -> aioredis.Redis:
    """Client from config["url"] or Redis(**config) keyword arguments."""
    options = dict(config)
    url = options.pop("url", None)
    if url:
        return aioredis.Redis.from_url(url, **options)
    return aioredis.Redis(**options)
