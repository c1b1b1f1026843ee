"""Accepted-network patterns with wildcard segments."""

from dataclasses import dataclass
from typing import Iterable

from ..errors import ValidationError

WILDCARD = "*"


@dataclass(frozen=True)
class NetworkPattern:
    """A namespace.name pattern where either segment may be '*'."""

    namespace: str
    name: str

    @classmethod
    def parse(cls, pattern: str) -> "NetworkPattern":
        parts = pattern.split(".") if isinstance(pattern, str) else []
        if len(parts) != 2 or not all(parts):
            raise ValidationError(
                f"Invalid accepted network pattern: {pattern!r}",
                ["expected '<namespace>.<name>' with optional '*' segments"],
            )
        return cls(namespace=parts[0], name=parts[1])

    def matches(self, namespace: str, name: str) -> bool:
        return self.namespace in (WILDCARD, namespace) and self.name in (WILDCARD, name)

    def __str__(self) -> str:
        return f"{self.namespace}.{self.name}"


class NetworkFilter:
    """Decides which remote networks an agent accepts capabilities from."""

    def __init__(self, own_network: str, patterns: Iterable[str]):
        self._own_network = own_network
        self._patterns = [NetworkPattern.parse(p) for p in patterns]

    @property
    def patterns(self) -> list[NetworkPattern]:
        return list(self._patterns)

    def accepts(self, network: str) -> bool:
        """True iff network is not our own and some pattern matches it."""
        if network == self._own_network:
            return False
        parts = network.split(".")
        if len(parts) != 2:
            return False
        namespace, name = parts
        return any(p.matches(namespace, name) for p in self._patterns)
