"""Registry of capabilities learned from remote heartbeats."""

import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from ..models import Capability, CapabilityFunction, CapabilityKind, CapabilitySchema


def capability_key(network: str, capability_name: str) -> str:
    return f"{network}-{capability_name}"


@dataclass(frozen=True)
class DiscoveredCapability:
    """A remote capability and the function that dispatches to it."""

    network: str
    schema: CapabilitySchema
    function: CapabilityFunction

    @property
    def key(self) -> str:
        return capability_key(self.network, self.schema.name)

    @property
    def name(self) -> str:
        return self.schema.name

    def as_capability(self) -> Capability:
        return Capability(
            schema=self.schema, function=self.function, kind=CapabilityKind.HANDOFF
        )


class CapabilityRegistry:
    """
    Copy-on-write map of discovered capabilities.

    Only the discovery listener writes; every write swaps in a new mapping, so
    a snapshot taken by an executor run never changes underneath it.
    """

    def __init__(
        self,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl
        self._clock = clock
        self._entries: Mapping[str, DiscoveredCapability] = MappingProxyType({})
        self._last_seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def register(
        self,
        network: str,
        schema: CapabilitySchema,
        function: CapabilityFunction,
    ) -> bool:
        """Add a capability unless its key exists. Returns True when added."""
        key = capability_key(network, schema.name)
        self._last_seen[key] = self._clock()
        if key in self._entries:
            return False

        entries = dict(self._entries)
        entries[key] = DiscoveredCapability(network=network, schema=schema, function=function)
        self._entries = MappingProxyType(entries)
        return True

    def touch(self, network: str, capability_name: str) -> None:
        key = capability_key(network, capability_name)
        if key in self._entries:
            self._last_seen[key] = self._clock()

    def _expired(self, key: str, now: float) -> bool:
        if self._ttl is None:
            return False
        return now - self._last_seen.get(key, now) > self._ttl

    def evict_expired(self) -> list[str]:
        """Drop capabilities not advertised within the TTL."""
        if self._ttl is None:
            return []
        now = self._clock()
        expired = [key for key in self._entries if self._expired(key, now)]
        if expired:
            entries = {k: v for k, v in self._entries.items() if k not in expired}
            self._entries = MappingProxyType(entries)
            for key in expired:
                self._last_seen.pop(key, None)
        return expired

    def snapshot(self) -> Mapping[str, DiscoveredCapability]:
        """Immutable view of the live capabilities."""
        entries = self._entries
        if self._ttl is None:
            return entries
        now = self._clock()
        return MappingProxyType(
            {k: v for k, v in entries.items() if not self._expired(k, now)}
        )
