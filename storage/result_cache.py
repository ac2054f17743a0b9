"""
Short-TTL memoization of search results, keyed by canonical URL.

Strictly a request-deduplication optimization: nothing is persisted, and
get() distinguishes "no entry" (None) from "cached zero items" ([]).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from storage.records import Record

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CacheEntry:
    """Immutable snapshot of a search result."""
    items: Tuple[Record, ...]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResultCache:
    """
    In-memory cache with a fixed TTL per entry.

    Args:
        ttl_seconds: Lifetime of each entry from insertion
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, canonical_url: str) -> Optional[List[Record]]:
        """Return a copy of the cached items, or None if absent or expired."""
        entry = self._entries.get(canonical_url)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            # Only drop the entry we looked at; a concurrent put may have replaced it
            if self._entries.get(canonical_url) is entry:
                del self._entries[canonical_url]
            return None
        return list(entry.items)

    def put(self, canonical_url: str, items: Iterable[Record]) -> None:
        """Store items, overwriting any existing entry with a fresh TTL window."""
        self._entries[canonical_url] = CacheEntry(
            items=tuple(items),
            expires_at=self._clock() + self.ttl_seconds,
        )

    def invalidate(self, canonical_url: str) -> None:
        if self._entries.pop(canonical_url, None) is not None:
            logger.debug(f"Cache invalidated for {canonical_url}")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
