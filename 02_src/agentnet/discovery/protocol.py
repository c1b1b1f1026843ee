"""Heartbeat producer, discovery listener and handoff dispatch."""

import asyncio
from typing import Any, Iterable

from ..errors import (
    DiscoveryError,
    HandoffError,
    OperationTimeoutError,
    TransportError,
    ValidationError,
)
from ..logging_config import get_logger
from ..models import (
    AgentIdentity,
    CapabilityFunction,
    CapabilitySchema,
    DiscoveryHeartbeat,
    ErrorReply,
    RunContext,
    TaskMessage,
    decode_envelope,
    decode_heartbeat,
)
from ..resilience import RetryPolicy, with_retry
from ..session import public_state
from ..transport import ITransport, Subscription, consume
from .networks import NetworkFilter
from .registry import CapabilityRegistry, capability_key

logger = get_logger(__name__)

# Consecutive failures after which heartbeat problems are logged as errors
HEARTBEAT_ESCALATION_THRESHOLD = 5


async def run_heartbeat(
    transport: ITransport,
    topic: str,
    heartbeat: DiscoveryHeartbeat,
    interval: float = 1.0,
) -> None:
    """Publish heartbeat to topic every interval seconds until cancelled."""
    payload = heartbeat.encode()
    failures = 0

    while True:
        try:
            await transport.publish(topic, payload)
        except Exception as e:
            failures += 1
            log = (
                logger.error
                if failures >= HEARTBEAT_ESCALATION_THRESHOLD
                else logger.warning
            )
            log(
                "Heartbeat publish failed (%s consecutive): %s",
                failures,
                e,
                extra={"context": {"network": heartbeat.network, "topic": topic}},
            )
        else:
            if failures:
                logger.info(
                    "Heartbeat resumed after %s failed attempts",
                    failures,
                    extra={"context": {"network": heartbeat.network}},
                )
                failures = 0
        await asyncio.sleep(interval)


def start_heartbeat(
    transport: ITransport,
    topic: str,
    identity: AgentIdentity,
    schemas: Iterable[CapabilitySchema],
    interval: float = 1.0,
) -> asyncio.Task:
    """Start the heartbeat loop and bind its task to the transport."""
    heartbeat = DiscoveryHeartbeat.for_agent(identity, schemas)
    task = asyncio.create_task(
        run_heartbeat(transport, topic, heartbeat, interval),
        name=f"heartbeat:{identity.network}",
    )
    transport.register_task(task)
    return task


def make_handoff_function(
    transport: ITransport,
    source: AgentIdentity,
    target_network: str,
    capability: str,
    timeout: float,
    retry: RetryPolicy,
) -> CapabilityFunction:
    """
    Build the dispatch function for one remote capability.

    The function sends the call arguments and the public session state to
    the target's task topic, with the chain of networks already running
    the task, and returns the raw reply text. Error replies and
    exhausted retries raise HandoffError.
    """

    async def handoff(context: RunContext, args: dict[str, Any]) -> str:
        message = TaskMessage(
            content=args,
            session={**public_state(context.state), "id": context.session_id},
            via=list(context.via or (source.network,)),
        )
        payload = message.encode()

        async def attempt() -> bytes:
            return await transport.request(target_network, payload, timeout=timeout)

        def on_retry(error: BaseException, attempt_no: int, delay: float) -> None:
            logger.warning(
                "Handoff %s to %s failed, retry %s/%s in %.2fs: %s",
                capability,
                target_network,
                attempt_no,
                retry.max_retries,
                delay,
                error,
            )

        try:
            data = await with_retry(attempt, retry, on_retry=on_retry)
        except (TransportError, OperationTimeoutError) as e:
            raise HandoffError(
                f"Handoff {capability} to {target_network} failed: {e}",
                source.network,
                target_network,
                capability,
            ) from e

        try:
            reply = decode_envelope(data)
        except ValidationError as e:
            raise HandoffError(
                f"Malformed reply from {target_network}: {e.message}",
                source.network,
                target_network,
                capability,
            ) from e

        if isinstance(reply, ErrorReply):
            raise HandoffError(
                f"{target_network} replied with {reply.type}: {reply.message}",
                source.network,
                target_network,
                capability,
            )
        return data.decode("utf-8")

    handoff.__name__ = f"handoff_{capability}"
    return handoff


class DiscoveryListener:
    """Consumes heartbeats and is the only writer of the capability registry."""

    def __init__(
        self,
        transport: ITransport,
        identity: AgentIdentity,
        registry: CapabilityRegistry,
        network_filter: NetworkFilter,
        handoff_timeout: float = 60.0,
        retry: RetryPolicy | None = None,
    ):
        self._transport = transport
        self._identity = identity
        self._registry = registry
        self._filter = network_filter
        self._handoff_timeout = handoff_timeout
        self._retry = retry or RetryPolicy()
        self._rejected: set[str] = set()
        self._task: asyncio.Task | None = None

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    def handle(self, data: bytes) -> list[str]:
        """Process one discovery frame. Returns the keys newly registered."""
        try:
            heartbeat = decode_heartbeat(data)
        except DiscoveryError as e:
            logger.warning("Skipping discovery message: %s", e.message)
            return []

        network = heartbeat.network
        if network == self._identity.network:
            return []

        if not self._filter.accepts(network):
            if network not in self._rejected:
                self._rejected.add(network)
                logger.info(
                    "Ignoring capabilities from %s: network not accepted",
                    network,
                    extra={"context": {"agent": self._identity.network}},
                )
            return []

        added = []
        for raw_schema in heartbeat.schemas:
            try:
                schema = CapabilitySchema.from_dict(raw_schema)
            except ValidationError as e:
                logger.warning("Skipping invalid schema from %s: %s", network, e.message)
                continue

            key = capability_key(network, schema.name)
            if key in self._registry:
                self._registry.touch(network, schema.name)
                continue

            function = make_handoff_function(
                self._transport,
                self._identity,
                network,
                schema.name,
                self._handoff_timeout,
                self._retry,
            )
            if self._registry.register(network, schema, function):
                added.append(key)
                logger.info(
                    "Discovered capability %s from %s",
                    schema.name,
                    network,
                    extra={"context": {"agent": self._identity.network}},
                )

        for key in self._registry.evict_expired():
            logger.info("Capability %s expired", key)
        return added

    async def start(self, topic: str) -> asyncio.Task:
        """
        Subscribe to the discovery topic and start consuming.

        Subscription failures here propagate so that startup can fail.
        """
        subscription = await self._transport.subscribe(topic)
        self._task = asyncio.create_task(
            self._run(topic, subscription),
            name=f"discovery:{self._identity.network}",
        )
        self._transport.register_task(self._task)
        return self._task

    async def _run(self, topic: str, subscription: Subscription) -> None:
        try:
            async for message in consume(self._transport, topic, subscription=subscription):
                self.handle(message.data)
        except TransportError as e:
            logger.error("Discovery listener stopped: %s", e.message)
            raise

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
