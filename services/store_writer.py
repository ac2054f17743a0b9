"""
Publishes records to the signed-in user's personal store.

The write is an idempotent create-or-replace at the record's content-addressed
path, so re-publishing a URL overwrites the previous record (last write wins).
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from connectors.homeserver import HomeserverClient
from storage.records import Record, Session
from storage.result_cache import ResultCache
from utils.content_address import address
from utils.errors import IdentityRequired, WriteRejected

logger = logging.getLogger(__name__)


class StoreWriter:
    """
    Args:
        homeserver: Personal-store client
        cache: Result cache to invalidate after a successful write
        identity_provider: Returns the current identity (or None)
        session_provider: Returns the current session (or None)
    """

    def __init__(
        self,
        homeserver: HomeserverClient,
        cache: ResultCache,
        identity_provider: Callable[[], Optional[str]],
        session_provider: Callable[[], Optional[Session]],
    ):
        self.homeserver = homeserver
        self.cache = cache
        self._identity = identity_provider
        self._session = session_provider

    async def publish(self, record: Record) -> str:
        """
        Write a record (whose content is already canonical).

        Returns:
            The storage path written

        Raises:
            IdentityRequired: no session and no configured identity
            WriteRejected: non-success response, or transport failure
        """
        identity = self._identity()
        if not identity:
            raise IdentityRequired()

        session = self._session()
        bearer = session.token if session else None

        path = self.homeserver.record_path(identity, address(record.content))
        try:
            response = await self.homeserver.put_json(path, record.to_json(), bearer=bearer)
        except httpx.HTTPError as exc:
            raise WriteRejected(None, path, repr(exc)) from exc

        if not response.is_success:
            raise WriteRejected(response.status_code, path, response.reason_phrase)

        self.cache.invalidate(record.content)
        logger.info(f"Published record to {path}")
        return path
