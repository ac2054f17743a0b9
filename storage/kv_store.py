"""
Key-Value Persistence for the Graphiti client.

Holds the session, persisted config overrides and local bookmarks.
Values are JSON documents.

Implementations:
  - SqliteKeyValueStore: aiosqlite-backed, survives restarts
  - MemoryKeyValueStore: dict-backed, for tests and throwaway clients

Usage:
    async with kv_store("graphiti.db") as kv:
        await kv.set("config", {"following": ["abc"]})
        cfg = await kv.get("config")
        await kv.remove("config")
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Protocol

import aiosqlite

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Persistence facility consumed by the client core."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """In-memory store. Values are copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so both stores accept the same values
        self._data[key] = json.loads(json.dumps(value))

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SqliteKeyValueStore:
    """
    SQLite-based key-value store.

    Usage:
        store = SqliteKeyValueStore("graphiti.db")
        await store.initialize()
        await store.set("session", {...})
        await store.close()
    """

    def __init__(self, db_path: str | Path = "graphiti.db", busy_timeout_ms: int = 5000):
        """
        Args:
            db_path: Path to SQLite database. Use ":memory:" for in-memory.
            busy_timeout_ms: Timeout in ms when database is locked
        """
        self.db_path = str(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._db: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the connection and create the table."""
        if self._db is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        if self.db_path != ":memory:":
            await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,  -- JSON
                updated_at TEXT NOT NULL  -- ISO 8601
            )
        """)
        await self._db.commit()
        logger.info(f"SqliteKeyValueStore initialized: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._db

    async def get(self, key: str) -> Optional[Any]:
        async with self._conn().execute(
            "SELECT value FROM kv WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        async with self._lock:
            db = self._conn()
            await db.execute(
                """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, payload, datetime.now(timezone.utc).isoformat()),
            )
            await db.commit()

    async def remove(self, key: str) -> None:
        async with self._lock:
            db = self._conn()
            await db.execute("DELETE FROM kv WHERE key = ?", (key,))
            await db.commit()


@asynccontextmanager
async def kv_store(db_path: str | Path = "graphiti.db") -> AsyncIterator[SqliteKeyValueStore]:
    """
    Context manager for SqliteKeyValueStore that handles initialization and cleanup.
    """
    store = SqliteKeyValueStore(db_path)
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()
