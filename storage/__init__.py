"""
Storage layer for the Graphiti client.

Provides local persistence (session, config overrides, bookmarks) on a
JSON key-value facility, plus the in-memory search result cache.

Main components:
- SqliteKeyValueStore / MemoryKeyValueStore: key-value persistence
- SessionStore: the single persisted authorization session
- BookmarkStore: locally saved URLs, keyed by content address
- ResultCache: short-TTL search results per canonical URL
- Record, Session, Bookmark: shared value types

Quick start:
    from storage import kv_store, BookmarkStore

    async with kv_store("graphiti.db") as kv:
        bookmarks = BookmarkStore(kv)
        await bookmarks.set("https://example.com", tags=["later"])

        if await bookmarks.get("https://example.com/"):
            print("Already saved")
"""

from storage.bookmark_store import BookmarkStore
from storage.kv_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    kv_store,
)
from storage.records import Bookmark, Record, Session
from storage.result_cache import ResultCache
from storage.session_store import SessionStore

__all__ = [
    "Bookmark",
    "BookmarkStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "Record",
    "ResultCache",
    "Session",
    "SessionStore",
    "SqliteKeyValueStore",
    "kv_store",
]

__version__ = "1.0.0"
