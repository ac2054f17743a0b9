"""
Personal-store access (homeserver).

Every identity owns a store rooted at store_root_template.format(identity=...).
Records live at a content-addressed path:

    <identity-root>/<namespace>/<ContentAddress>.json
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from connectors.http_transport import HttpTransport

logger = logging.getLogger(__name__)

API_NAME = "homeserver"


@dataclass
class PeerFetch:
    """Outcome of one direct peer read."""
    identity: str
    data: Optional[Any] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.data is not None

    @property
    def failed(self) -> bool:
        """True for outages (transport errors, 5xx) as opposed to a plain miss."""
        if self.error is not None:
            return True
        return self.status_code is not None and self.status_code >= 500


class HomeserverClient:
    """Reads and writes JSON objects in personal stores."""

    def __init__(
        self,
        transport: HttpTransport,
        store_root_template: str = "https://homeserver.pubky.app/{identity}",
        namespace: str = "pub/graphiti.dev/links",
    ):
        self.transport = transport
        self.store_root_template = store_root_template
        self.namespace = namespace.strip("/")

    def identity_root(self, identity: str) -> str:
        return self.store_root_template.format(identity=identity).rstrip("/")

    def record_path(self, identity: str, address: str) -> str:
        return f"{self.identity_root(identity)}/{self.namespace}/{address}.json"

    async def put_json(self, path: str, payload: Any, bearer: Optional[str] = None) -> httpx.Response:
        """Create-or-replace an object. Transport errors propagate."""
        return await self.transport.put(path, API_NAME, json=payload, bearer=bearer)

    async def fetch_record(self, identity: str, address: str) -> PeerFetch:
        """
        Read one peer's record for an address.

        Never raises: any failure is folded into the returned PeerFetch.
        """
        path = self.record_path(identity, address)
        try:
            response = await self.transport.get(path, API_NAME)
        except httpx.HTTPError as exc:
            logger.debug(f"Peer {identity} unreachable: {exc!r}")
            return PeerFetch(identity=identity, error=repr(exc))

        if not response.is_success:
            return PeerFetch(identity=identity, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            logger.debug(f"Peer {identity} returned unparseable record: {exc}")
            return PeerFetch(identity=identity, status_code=response.status_code)

        return PeerFetch(identity=identity, data=data, status_code=response.status_code)
