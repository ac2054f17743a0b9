"""
Local Bookmark Store

Records which URLs the local user has privately saved. Keyed by the content
address of the canonical URL, so the raw URL is never written to disk.
No network interaction and no coupling to the search result cache.

Usage:
    bookmarks = BookmarkStore(kv)
    await bookmarks.set("https://example.com/?b=1&a=2", tags=["read-later"], note="")
    bookmark = await bookmarks.get("https://example.com/?a=2&b=1")  # same key
    await bookmarks.remove("https://example.com/?a=2&b=1")
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from storage.kv_store import KeyValueStore
from storage.records import Bookmark, normalize_tags, now_ms
from utils.content_address import content_address

logger = logging.getLogger(__name__)

BOOKMARK_PREFIX = "bookmark:"


class BookmarkStore:
    """Keyed record of locally saved URLs."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    @staticmethod
    def key_for(raw_url: str) -> str:
        """Storage key for a URL (raises InvalidUrl)."""
        return f"{BOOKMARK_PREFIX}{content_address(raw_url)}"

    async def get(self, raw_url: str) -> Optional[Bookmark]:
        data = await self.kv.get(self.key_for(raw_url))
        if data is None:
            return None
        return Bookmark.from_json(data)

    async def set(
        self,
        raw_url: str,
        tags: Optional[Iterable[str]] = None,
        note: str = "",
    ) -> Bookmark:
        bookmark = Bookmark(
            saved=True,
            at=now_ms(),
            tags=normalize_tags(tags),
            note=note or "",
        )
        key = self.key_for(raw_url)
        await self.kv.set(key, bookmark.to_json())
        logger.debug(f"Bookmark saved: {key}")
        return bookmark

    async def remove(self, raw_url: str) -> None:
        key = self.key_for(raw_url)
        await self.kv.remove(key)
        logger.debug(f"Bookmark removed: {key}")
