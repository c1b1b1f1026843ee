"""Tests for the RabbitMQ transport over kombu's in-memory broker."""

import asyncio
import uuid

import pytest
import pytest_asyncio

from agentnet.errors import OperationTimeoutError, TransportError
from agentnet.transport import InboundMessage, RabbitMQTransport, respond

from conftest import wait_for


@pytest_asyncio.fixture
async def make_transport():
    """Create transports sharing one exchange on the memory:// broker."""
    config = {"url": "memory://", "exchange": f"agentnet-{uuid.uuid4().hex[:8]}"}
    transports = []

    async def _make() -> RabbitMQTransport:
        transport = RabbitMQTransport()
        await transport.connect(config)
        transports.append(transport)
        return transport

    yield _make

    for transport in transports:
        await transport.disconnect()


async def drain(subscription, received):
    async for message in subscription:
        received.append(message.data)


class TestRabbitMQPubSub:
    """Tests for publish and subscribe over the topic exchange."""

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, make_transport):
        transport = await make_transport()
        await transport.connect({"url": "memory://"})
        assert transport.is_connected

    @pytest.mark.asyncio
    async def test_plain_subscriptions_fan_out(self, make_transport):
        transport = await make_transport()
        first, second = [], []
        tasks = [
            asyncio.create_task(drain(await transport.subscribe("test.discovery"), first)),
            asyncio.create_task(drain(await transport.subscribe("test.discovery"), second)),
        ]

        await transport.publish("test.discovery", b"heartbeat")

        await wait_for(lambda: first and second)
        assert first == [b"heartbeat"]
        assert second == [b"heartbeat"]
        for task in tasks:
            task.cancel()

    @pytest.mark.asyncio
    async def test_queue_group_delivers_once(self, make_transport):
        """Test that members of one queue group share messages without duplicates."""
        publisher = await make_transport()
        received = []
        tasks = []
        for _ in range(2):
            member = await make_transport()
            subscription = await member.subscribe("sales.pricingAgent", queue_group="pricingAgent")
            tasks.append(asyncio.create_task(drain(subscription, received)))

        for i in range(4):
            await publisher.publish("sales.pricingAgent", f"task {i}".encode())

        await wait_for(lambda: len(received) == 4)
        await asyncio.sleep(0.05)
        assert sorted(received) == [b"task 0", b"task 1", b"task 2", b"task 3"]
        for task in tasks:
            task.cancel()

    @pytest.mark.asyncio
    async def test_publish_requires_connection(self):
        with pytest.raises(TransportError):
            await RabbitMQTransport().publish("sales.pricingAgent", b"x")


class TestRabbitMQRequestReply:
    """Tests for request/reply over inbox queues."""

    @pytest.mark.asyncio
    async def test_request_gets_reply(self, make_transport):
        server = await make_transport()
        caller = await make_transport()
        subscription = await server.subscribe("sales.pricingAgent", queue_group="pricingAgent")

        async def serve():
            async for message in subscription:
                await respond(server, message, b"quote for " + message.data)

        task = asyncio.create_task(serve())

        reply = await caller.request("sales.pricingAgent", b"A1", timeout=2)

        assert reply == b"quote for A1"
        task.cancel()

    @pytest.mark.asyncio
    async def test_request_timeout(self, make_transport):
        transport = await make_transport()

        with pytest.raises(OperationTimeoutError):
            await transport.request("sales.nobody", b"A1", timeout=0.05)

    @pytest.mark.asyncio
    async def test_late_reply_is_dropped(self, make_transport):
        """Test that replying to an inbox whose request gave up is harmless."""
        server = await make_transport()
        caller = await make_transport()
        subscription = await server.subscribe("sales.pricingAgent", queue_group="pricingAgent")

        with pytest.raises(OperationTimeoutError):
            await caller.request("sales.pricingAgent", b"A1", timeout=0.05)

        [late] = [m async for m in _take(subscription, 1)]
        assert late.reply_to.startswith("_INBOX.")
        await respond(server, late, b"quote for A1")

        # The caller still works for the next request
        task = asyncio.create_task(_serve_once(server, subscription))
        assert await caller.request("sales.pricingAgent", b"B2", timeout=2) == b"ok B2"
        await task


async def _take(subscription, count):
    taken = 0
    async for message in subscription:
        yield message
        taken += 1
        if taken == count:
            return


async def _serve_once(transport, subscription):
    async for message in subscription:
        await respond(transport, message, b"ok " + message.data)
        return


class TestRabbitMQMessages:
    """Tests for the inbound message shape."""

    @pytest.mark.asyncio
    async def test_reply_to_only_on_requests(self, make_transport):
        transport = await make_transport()
        subscription = await transport.subscribe("sales.frontDesk")

        await transport.publish("sales.frontDesk", b"plain")
        [message] = [m async for m in _take(subscription, 1)]

        assert message == InboundMessage(topic="sales.frontDesk", data=b"plain", reply_to=None)
