"""
Central index (Nexus) client.

Queries records by privacy tag, optionally narrowed to a set of authors.
The index is best-effort: a transport failure, an error status or an
unparseable body is reported as a failed query with zero items, never raised.

Wire contract:
    GET {nexus_url}/v0/search/links?tag=<privacy tag>[&authors=a,b]
    -> [record, ...]  or  {"items": [record, ...]}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import httpx

from connectors.http_transport import HttpTransport
from storage.records import Record

logger = logging.getLogger(__name__)

API_NAME = "nexus"
SEARCH_PATH = "/v0/search/links"


@dataclass
class IndexResult:
    """Records returned by one index query."""
    items: List[Record] = field(default_factory=list)
    ok: bool = True
    error: Optional[str] = None


def _extract_items(body: Any) -> List[Any]:
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        items = body.get("items")
        if isinstance(items, list):
            return items
    return []


class NexusIndexClient:
    """Best-effort client for the central index."""

    def __init__(self, transport: HttpTransport, nexus_url: str = "https://nexus.pubky.app"):
        self.transport = transport
        self.nexus_url = nexus_url.rstrip("/")

    async def query(self, tag: str, authors: Optional[Sequence[str]] = None) -> IndexResult:
        params = {"tag": tag}
        if authors:
            params["authors"] = ",".join(authors)

        url = f"{self.nexus_url}{SEARCH_PATH}"
        try:
            response = await self.transport.get(url, API_NAME, params=params)
        except httpx.HTTPError as exc:
            logger.warning(f"Index query failed: {exc!r}")
            return IndexResult(ok=False, error=repr(exc))

        if not response.is_success:
            logger.warning(f"Index query returned {response.status_code}")
            return IndexResult(ok=False, error=f"HTTP {response.status_code}")

        try:
            body = response.json() if response.content else None
        except ValueError as exc:
            logger.warning(f"Index returned unparseable body: {exc}")
            return IndexResult(ok=False, error="unparseable body")

        records = []
        for raw in _extract_items(body):
            try:
                records.append(Record.from_json(raw))
            except ValueError as exc:
                logger.debug(f"Skipping malformed index item: {exc}")
        return IndexResult(items=records)
