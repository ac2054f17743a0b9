"""
Distributed Reader: "who said what about URL X".

Resolution order:
1. Result cache (per canonical URL, short TTL)
2. Central index, queried by privacy tag (narrowed to the PeerSet if set)
3. Only if the index returned nothing and a PeerSet is configured:
   direct reads of every peer's store, all in parallel, all awaited

One peer failing never fails the search. Failures are reported through
SearchResult.degraded instead, so callers can tell "nobody posted about
this" apart from "the index or some peers were unreachable".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Sequence

from connectors.homeserver import HomeserverClient, PeerFetch
from connectors.nexus_index import NexusIndexClient
from storage.records import RECORD_KIND, Record, sort_newest_first
from storage.result_cache import ResultCache
from utils.canonical_url import canonicalize
from utils.content_address import address, privacy_tag

logger = logging.getLogger(__name__)


class ResultSource(str, Enum):
    CACHE = "cache"
    INDEX = "index"
    PEERS = "peers"
    NONE = "none"


@dataclass
class SearchResult:
    """Records about a URL, plus where they came from."""
    canonical_url: str
    items: List[Record] = field(default_factory=list)
    source: ResultSource = ResultSource.NONE
    degraded: bool = False
    failed_peers: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "canonical_url": self.canonical_url,
            "source": self.source.value,
            "degraded": self.degraded,
            "failed_peers": list(self.failed_peers),
            "items": [r.to_dict() for r in self.items],
        }


class DistributedReader:
    """
    Args:
        index: Central index client
        homeserver: Personal-store client for peer fallback
        cache: Result cache shared with the store writer
        peers_provider: Returns the current PeerSet
    """

    def __init__(
        self,
        index: NexusIndexClient,
        homeserver: HomeserverClient,
        cache: ResultCache,
        peers_provider: Callable[[], Sequence[str]],
    ):
        self.index = index
        self.homeserver = homeserver
        self.cache = cache
        self._peers = peers_provider

    async def search(self, raw_url: str) -> SearchResult:
        """
        Resolve records about a URL, newest first.

        Raises:
            InvalidUrl: only for malformed input; network failures never raise
        """
        canonical = canonicalize(raw_url)

        cached = self.cache.get(canonical)
        if cached is not None:
            return SearchResult(canonical, items=cached, source=ResultSource.CACHE)

        peers = list(self._peers())
        result = SearchResult(canonical)

        index_result = await self.index.query(privacy_tag(canonical), authors=peers or None)
        if not index_result.ok:
            result.degraded = True
        items = index_result.items
        if items:
            result.source = ResultSource.INDEX

        if not items and peers:
            items, failed = await self._read_peers(canonical, peers)
            result.failed_peers = failed
            if failed:
                result.degraded = True
            if items:
                result.source = ResultSource.PEERS

        ordered = sort_newest_first(items)
        self.cache.put(canonical, ordered)
        result.items = list(ordered)

        if result.degraded:
            logger.warning(
                f"Search for {canonical} degraded "
                f"(index ok={index_result.ok}, failed peers={len(result.failed_peers)})"
            )
        return result

    async def _read_peers(self, canonical: str, peers: List[str]):
        content_address = address(canonical)
        tasks = [self.homeserver.fetch_record(peer, content_address) for peer in peers]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        records: List[Record] = []
        failed: List[str] = []
        for peer, outcome in zip(peers, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.debug(f"Peer {peer} fetch raised: {outcome!r}")
                failed.append(peer)
                continue
            record = self._to_record(outcome)
            if outcome.failed:
                failed.append(peer)
            if record is not None:
                records.append(record)

        logger.debug(f"Peer fallback: {len(records)}/{len(peers)} peers had a record")
        return records, failed

    @staticmethod
    def _to_record(fetch: PeerFetch):
        if not fetch.found:
            return None
        if not isinstance(fetch.data, dict) or fetch.data.get("kind") != RECORD_KIND:
            logger.debug(f"Peer {fetch.identity} object is not a {RECORD_KIND} record")
            return None
        try:
            return Record.from_json(fetch.data, author=fetch.identity)
        except ValueError as exc:
            logger.debug(f"Peer {fetch.identity} record rejected: {exc}")
            return None
