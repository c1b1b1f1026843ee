"""Transport module: one interface, one implementation per broker."""

from typing import Callable

from ..errors import ConfigurationError
from .base import (
    InboundMessage,
    ITransport,
    Subscription,
    consume,
    respond,
    safe_connect,
)
from .memory import MemoryBroker, MemoryTransport, default_broker
from .nats import NatsTransport
from .rabbitmq import RabbitMQTransport
from .redis import RedisTransport


_FACTORIES: dict[str, Callable[[], ITransport]] = {
    "memory": MemoryTransport,
    "nats": NatsTransport,
    "rabbitmq": RabbitMQTransport,
    "redis": RedisTransport,
}


def create_transport(transport_type: str) -> ITransport:
    """Create a transport instance for the configured type string."""
    factory = _FACTORIES.get(transport_type.lower())
    if factory is None:
        raise ConfigurationError(
            f"Unsupported transport type: {transport_type}",
            {"supported_types": sorted(_FACTORIES)},
        )
    return factory()


__all__ = [
    "InboundMessage",
    "ITransport",
    "Subscription",
    "MemoryBroker",
    "MemoryTransport",
    "NatsTransport",
    "RabbitMQTransport",
    "RedisTransport",
    "consume",
    "create_transport",
    "default_broker",
    "respond",
    "safe_connect",
]
