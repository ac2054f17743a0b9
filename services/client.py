"""
GraphitiClient: the boundary the extension UI talks to.

A single client object owns all mutable state (result cache, session,
config, HTTP pool, background auth task); nothing lives at module level.

Usage:
    async with GraphitiClient(ClientConfig.from_env()) as client:
        await client.start_authorization()
        await client.publish("https://example.com", tags=["python"], note="good read")
        records = await client.search("https://example.com")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from connectors.homeserver import HomeserverClient
from connectors.http_transport import HttpTransport
from connectors.nexus_index import NexusIndexClient
from connectors.relay_handshake import ApprovalCallback, AuthorizationHandshake
from services.config_loader import ClientConfig, ConfigStore
from services.distributed_reader import DistributedReader, SearchResult
from services.store_writer import StoreWriter
from storage.bookmark_store import BookmarkStore
from storage.kv_store import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from storage.records import Bookmark, Record, Session, normalize_tags, now_ms
from storage.result_cache import ResultCache
from storage.session_store import SessionStore
from utils import canonical_url, content_address as addressing
from utils.rate_limiter import RateLimiterPool

logger = logging.getLogger(__name__)


class GraphitiClient:
    """
    Args:
        config: Base configuration (persisted overrides are merged on start)
        kv: Persistence facility; defaults to SQLite at config.db_path
        http_transport: Optional httpx transport (tests use httpx.MockTransport)
        on_approval_url: UI surface for the authorization approval URL
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        kv: Optional[KeyValueStore] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        on_approval_url: Optional[ApprovalCallback] = None,
    ):
        self.config = config or ClientConfig()
        self._base_config = self.config
        self._owns_kv = kv is None
        self.kv: KeyValueStore = kv or SqliteKeyValueStore(self.config.db_path)
        self.on_approval_url = on_approval_url

        self.transport = HttpTransport(
            timeout_seconds=self.config.request_timeout_seconds,
            limiters=RateLimiterPool(),
            transport=http_transport,
        )
        self.cache = ResultCache(ttl_seconds=self.config.cache_ttl_seconds)
        self.sessions = SessionStore(self.kv)
        self.bookmarks = BookmarkStore(self.kv)
        self.config_store = ConfigStore(self.kv)

        self.session: Optional[Session] = None
        self.pending_authorization: Optional[asyncio.Task] = None
        self._started = False
        self._build_components()

    def _build_components(self) -> None:
        self.homeserver = HomeserverClient(
            self.transport,
            store_root_template=self.config.store_root_template,
            namespace=self.config.namespace,
        )
        self.index = NexusIndexClient(self.transport, nexus_url=self.config.nexus_url)
        self.reader = DistributedReader(
            self.index,
            self.homeserver,
            self.cache,
            peers_provider=lambda: self.config.following,
        )
        self.writer = StoreWriter(
            self.homeserver,
            self.cache,
            identity_provider=self.identity,
            session_provider=lambda: self.session,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open storage and HTTP pool, load persisted config and session."""
        if self._started:
            return
        if isinstance(self.kv, SqliteKeyValueStore):
            await self.kv.initialize()
        await self.transport.start()

        self.config = await self.config_store.load(self._base_config)
        self._build_components()
        self.session = await self.sessions.load()
        self._started = True
        logger.info(
            f"Graphiti client started (identity={self.identity() or 'none'}, "
            f"following={len(self.config.following)})"
        )

    async def close(self) -> None:
        if self.pending_authorization and not self.pending_authorization.done():
            self.pending_authorization.cancel()
            try:
                await self.pending_authorization
            except asyncio.CancelledError:
                pass
        self.pending_authorization = None
        await self.transport.shutdown()
        if self._owns_kv and isinstance(self.kv, SqliteKeyValueStore):
            await self.kv.close()
        self._started = False

    async def __aenter__(self) -> GraphitiClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    @staticmethod
    def canonicalize(url: str) -> str:
        return canonical_url.canonicalize(url)

    normalize = canonicalize

    @staticmethod
    def content_address(url: str) -> str:
        return addressing.content_address(url)

    @staticmethod
    def privacy_tag(url: str) -> str:
        """Tag for the canonical form of a URL (the form the reader queries)."""
        return addressing.privacy_tag(canonical_url.canonicalize(url))

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def identity(self) -> Optional[str]:
        if self.session:
            return self.session.identity
        return self.config.my_pubkey

    async def get_session(self) -> Optional[Session]:
        return self.session

    async def sign_out(self) -> None:
        self.session = None
        await self.sessions.clear()

    def _handshake(self) -> AuthorizationHandshake:
        return AuthorizationHandshake(
            self.transport,
            relay_url=self.config.relay_url,
            capabilities=self.config.capabilities,
            session_store=self.sessions,
            poll_interval=self.config.poll_interval_seconds,
            deadline_seconds=self.config.auth_deadline_seconds,
            on_approval_url=self.on_approval_url,
        )

    async def start_authorization(self, await_approval: bool = True) -> bool:
        """
        Run the relay handshake.

        With await_approval=False, returns True once the approval URL has been
        surfaced; polling continues in self.pending_authorization.

        Raises:
            RelayUnavailable, AuthDenied, AuthTimeout
        """
        if self.pending_authorization and not self.pending_authorization.done():
            self.pending_authorization.cancel()

        handshake = self._handshake()
        request = await handshake.begin()

        if not await_approval:
            self.pending_authorization = asyncio.create_task(
                self._complete_authorization(handshake, request)
            )
            self.pending_authorization.add_done_callback(_log_background_failure)
            return True

        await self._complete_authorization(handshake, request)
        return True

    async def _complete_authorization(self, handshake, request) -> Session:
        session = await handshake.complete(request)
        self.session = session
        if self.config.my_pubkey != session.identity:
            self.config = self.config.with_overrides({"my_pubkey": session.identity})
            self.cache.clear()
            await self.config_store.save(self.config)
        return session

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def publish(
        self,
        url: str,
        tags: Optional[Iterable[str]] = None,
        note: str = "",
    ) -> str:
        """
        Publish a link record about url. Returns the storage path.

        Raises:
            InvalidUrl, IdentityRequired, WriteRejected
        """
        record = Record(
            content=canonical_url.canonicalize(url),
            tags=normalize_tags(tags),
            note=note or "",
            created_at=now_ms(),
        )
        return await self.writer.publish(record)

    async def search(self, url: str) -> List[Record]:
        """Records about url, newest first."""
        return (await self.reader.search(url)).items

    async def search_detailed(self, url: str) -> SearchResult:
        return await self.reader.search(url)

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    async def get_bookmark(self, url: str) -> Optional[Bookmark]:
        return await self.bookmarks.get(url)

    async def set_bookmark(
        self,
        url: str,
        tags: Optional[Iterable[str]] = None,
        note: str = "",
    ) -> Bookmark:
        return await self.bookmarks.set(url, tags=tags, note=note)

    async def remove_bookmark(self, url: str) -> None:
        await self.bookmarks.remove(url)

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    async def get_config(self) -> Dict[str, Any]:
        return self.config.to_dict()

    async def set_config(self, updates: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply and persist user-editable config (raises ValueError on bad keys)."""
        self.config = self.config.with_overrides(updates)
        self._build_components()
        self.cache.clear()
        await self.config_store.save(self.config)
        logger.info(f"Config updated: {sorted(updates)}")
        return self.config.to_dict()


def _log_background_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"Background authorization failed: {exc}")


def memory_client(config: Optional[ClientConfig] = None, **kwargs) -> GraphitiClient:
    """Client with in-memory persistence (nothing touches disk)."""
    return GraphitiClient(config=config, kv=MemoryKeyValueStore(), **kwargs)
