"""
Session persistence on top of the key-value facility.
"""

from __future__ import annotations

import logging
from typing import Optional

from storage.kv_store import KeyValueStore
from storage.records import Session

logger = logging.getLogger(__name__)

SESSION_KEY = "session"


class SessionStore:
    """Load, save and clear the single persisted Session."""

    def __init__(self, kv: KeyValueStore, key: str = SESSION_KEY):
        self.kv = kv
        self.key = key

    async def load(self) -> Optional[Session]:
        data = await self.kv.get(self.key)
        if data is None:
            return None
        session = Session.from_json(data)
        if session is None:
            # Unusable payload counts as detected invalidity
            logger.warning("Discarding malformed persisted session")
            await self.kv.remove(self.key)
        return session

    async def save(self, session: Session) -> None:
        await self.kv.set(self.key, session.to_json())
        logger.info(f"Session saved for {session.identity}")

    async def clear(self) -> None:
        await self.kv.remove(self.key)
        logger.info("Session cleared")
