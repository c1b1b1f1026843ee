"""Storage module."""

from typing import Any

from ..errors import ConfigurationError
from .storage import IStorage, MemoryStorage, RedisStorage, Storage


def create_storage(kind: str = "memory", **options: Any) -> IStorage:
    """Create a storage backend: "memory", "sqlite" or "redis"."""
    kind = kind.lower()
    if kind == "memory":
        return MemoryStorage(**options)
    if kind == "sqlite":
        return Storage(options.get("db_path"))
    if kind == "redis":
        return RedisStorage(**options)
    raise ConfigurationError(
        f"Unsupported storage type: {kind}",
        {"supported_types": ["memory", "redis", "sqlite"]},
    )


__all__ = ["IStorage", "MemoryStorage", "RedisStorage", "Storage", "create_storage"]
