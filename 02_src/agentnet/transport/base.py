"""Transport interface and the helpers shared by every backend."""

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol

from ..errors import TransportError
from ..logging_config import get_logger
from ..resilience import RetryPolicy, with_retry

logger = get_logger(__name__)


@dataclass
class InboundMessage:
    """A message delivered by a subscription."""

    topic: str
    data: bytes
    reply_to: str | None = None


class Subscription(Protocol):
    """An async stream of inbound messages on one topic."""

    def __aiter__(self) -> AsyncIterator[InboundMessage]:
        ...

    async def unsubscribe(self) -> None:
        """Stop delivery and release broker resources."""
        ...


class ITransport(Protocol):
    """Uniform publish/subscribe/request-reply over a pluggable broker."""

    transport_type: str

    @property
    def is_connected(self) -> bool:
        """Whether the underlying connection is alive."""
        ...

    async def connect(self, config: dict[str, Any]) -> None:
        """Open the connection. Idempotent."""
        ...

    async def disconnect(self) -> None:
        """Cancel registered tasks and release the connection."""
        ...

    async def publish(self, topic: str, data: bytes) -> None:
        """Publish a message to a topic."""
        ...

    async def subscribe(
        self, topic: str, queue_group: str | None = None
    ) -> Subscription:
        """Subscribe to a topic, optionally as a competing consumer."""
        ...

    async def request(self, topic: str, data: bytes, timeout: float) -> bytes:
        """Send a request and await one reply, or raise OperationTimeoutError."""
        ...

    def register_task(self, task: asyncio.Task) -> None:
        """Bind a background task (e.g. a heartbeat) to this connection."""
        ...


async def safe_connect(
    transport: ITransport,
    config: dict[str, Any],
    policy: RetryPolicy | None = None,
) -> None:
    """Connect with exponential backoff, raising TransportError when exhausted."""
    policy = policy or RetryPolicy(max_retries=4, base_delay=1.0, max_delay=10.0)

    def on_retry(error: BaseException, attempt: int, delay: float) -> None:
        logger.warning(
            "Transport connect attempt %s/%s failed, retrying in %.2fs: %s",
            attempt,
            policy.max_retries + 1,
            delay,
            error,
            extra={"context": {"transport_type": transport.transport_type}},
        )

    async def attempt() -> None:
        try:
            await transport.connect(config)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(
                f"Failed to connect: {e}", transport.transport_type
            ) from e

    try:
        await with_retry(attempt, policy, retryable=(TransportError,), on_retry=on_retry)
    except TransportError as e:
        raise TransportError(
            f"Failed to connect after {policy.max_retries + 1} attempts: {e.message}",
            transport.transport_type,
            {"details": e.message},
        ) from e


async def consume(
    transport: ITransport,
    topic: str,
    queue_group: str | None = None,
    subscription: Subscription | None = None,
) -> AsyncIterator[InboundMessage]:
    """
    Yield messages from topic forever.

    When delivery fails the subscription is re-established as long as the
    transport is still connected; otherwise the failure is raised as fatal.
    An already-open subscription may be passed in to consume from first.
    """
    if subscription is None:
        subscription = await transport.subscribe(topic, queue_group)
    while True:
        try:
            async for message in subscription:
                yield message
            # A subscription only ends on its own when the connection closes.
            if not transport.is_connected:
                raise TransportError(
                    f"Connection closed while consuming {topic}",
                    transport.transport_type,
                    {"topic": topic},
                )
        except (asyncio.CancelledError, GeneratorExit):
            await subscription.unsubscribe()
            raise
        except Exception as e:
            if not transport.is_connected:
                if isinstance(e, TransportError):
                    raise
                raise TransportError(
                    f"Connection lost while consuming {topic}: {e}",
                    transport.transport_type,
                    {"topic": topic},
                ) from e
            logger.error("Subscription error on %s, resubscribing: %s", topic, e)
        await subscription.unsubscribe()
        subscription = await transport.subscribe(topic, queue_group)


async def respond(transport: ITransport, message: InboundMessage, data: bytes) -> None:
    """Reply to a request message. Messages without reply_to are ignored."""
    if not message.reply_to:
        logger.debug("Message on %s has no reply address, dropping reply", message.topic)
        return
    await transport.publish(message.reply_to, data)
