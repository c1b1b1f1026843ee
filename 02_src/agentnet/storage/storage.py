"""Key/value and trace event storage backends."""

import json
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite
import redis.asyncio as aioredis

from ..models import TraceEvent
from ..paths import resolve_db_path


class IStorage(Protocol):
    """Persistent storage for session records and trace events."""

    async def init(self) -> None:
        """Open the backend and create tables if needed."""
        ...

    async def close(self) -> None:
        """Release the backend connection."""
        ...

    # Key/value
    async def get(self, key: str) -> str | None:
        """Get a value by key, or None when absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a key. Missing keys are ignored."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events (newest first) with optional filters."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


def _filter_events(
    events: list[TraceEvent],
    after: datetime | None,
    event_types: list[str] | None,
    actor: str | None,
    limit: int,
) -> list[TraceEvent]:
    selected = [
        e
        for e in events
        if (after is None or e.timestamp > after)
        and (not event_types or e.event_type in event_types)
        and (actor is None or e.actor == actor)
    ]
    selected.sort(key=lambda e: e.timestamp, reverse=True)
    return selected[:limit]


def _event_to_json(event: TraceEvent) -> str:
    return json.dumps(
        {
            "id": event.id,
            "event_type": event.event_type,
            "actor": event.actor,
            "data": event.data,
            "timestamp": event.timestamp.isoformat(),
        },
        default=str,
    )


def _event_from_json(raw: str | bytes) -> TraceEvent:
    payload = json.loads(raw)
    return TraceEvent(
        id=payload["id"],
        event_type=payload["event_type"],
        actor=payload["actor"],
        data=payload["data"],
        timestamp=datetime.fromisoformat(payload["timestamp"]),
    )


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        # Read and execute schema
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Key/value
    async def get(self, key: str) -> str | None:
        conn = self._require_conn()
        cursor = await conn.execute("SELECT value FROM sessions WHERE key = ?", (key,))
        row = await cursor.fetchone()
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO sessions (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            """,
            (key, value),
        )
        await conn.commit()

    async def delete(self, key: str) -> None:
        conn = self._require_conn()
        await conn.execute("DELETE FROM sessions WHERE key = ?", (key,))
        await conn.commit()

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, default=str),
                event.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        conn = self._require_conn()

        # Build query dynamically
        conditions = []
        params: list = []

        if after:
            conditions.append("timestamp > ?")
            params.append(after.isoformat())
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=datetime.fromisoformat(row[4]).replace(tzinfo=timezone.utc),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()
        for table in ["sessions", "trace_events"]:
            await conn.execute(f"DELETE FROM {table}")
        await conn.commit()


class MemoryStorage:
    """Dict-backed storage for tests and single-process agents."""

    def __init__(self, max_trace_events: int = 10000):
        self._values: dict[str, str] = {}
        # Oldest events fall off once the cap is reached
        self._events: deque[TraceEvent] = deque(maxlen=max_trace_events)

    async def init(self) -> None:
        return

    async def close(self) -> None:
        return

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    async def save_trace_event(self, event: TraceEvent) -> None:
        self._events.append(event)

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        return _filter_events(list(reversed(self._events)), after, event_types, actor, limit)

    async def clear(self) -> None:
        self._values.clear()
        self._events.clear()


class RedisStorage:
    """
    Redis storage.

    Values live under ``<prefix><key>`` with an optional expiry; trace events
    are pushed onto a capped list at ``<prefix>trace_events``.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379",
        prefix: str = "agentnet:",
        ttl: int | None = None,
        max_trace_events: int = 10000,
        client: aioredis.Redis | None = None,
    ):
        self._url = url
        self._prefix = prefix
        self._ttl = ttl
        self._max_trace_events = max_trace_events
        self._client = client

    @property
    def _trace_key(self) -> str:
        return f"{self._prefix}trace_events"

    async def init(self) -> None:
        if self._client is None:
            self._client = aioredis.Redis.from_url(self._url, decode_responses=True)
        await self._client.ping()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> aioredis.Redis:
        if self._client is None:
            raise RuntimeError("Storage not initialized")
        return self._client

    async def get(self, key: str) -> str | None:
        value = await self._require_client().get(self._prefix + key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        await self._require_client().set(self._prefix + key, value, ex=self._ttl)

    async def delete(self, key: str) -> None:
        await self._require_client().delete(self._prefix + key)

    async def save_trace_event(self, event: TraceEvent) -> None:
        client = self._require_client()
        await client.lpush(self._trace_key, _event_to_json(event))
        await client.ltrim(self._trace_key, 0, self._max_trace_events - 1)

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        raw_events = await self._require_client().lrange(self._trace_key, 0, -1)
        events = [_event_from_json(raw) for raw in raw_events]
        return _filter_events(events, after, event_types, actor, limit)

    async def clear(self) -> None:
        client = self._require_client()
        keys = [key async for key in client.scan_iter(match=f"{self._prefix}*")]
        if keys:
            await client.delete(*keys)
