"""Capability discovery over the shared discovery topic."""

from .networks import NetworkFilter, NetworkPattern
from .protocol import (
    DiscoveryListener,
    make_handoff_function,
    run_heartbeat,
    start_heartbeat,
)
from .registry import CapabilityRegistry, DiscoveredCapability, capability_key

__all__ = [
    "CapabilityRegistry",
    "DiscoveredCapability",
    "DiscoveryListener",
    "NetworkFilter",
    "NetworkPattern",
    "capability_key",
    "make_handoff_function",
    "run_heartbeat",
    "start_heartbeat",
]
