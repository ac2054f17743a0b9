"""
Authorization handshake through a third-party relay.

State machine:

    Idle -> RequestCreated -> Polling -> {Approved, Denied, Expired, TimedOut}

1. Ask the relay to mint an auth request (id, approval URL, status URL).
2. Surface the approval URL to the user (callback supplied by the UI layer).
3. Poll the status URL once per poll interval until the request is approved,
   denied or expired, or the global deadline passes.

Transport failures while polling skip the tick; they never abort the loop.
Every terminal state is final for that attempt; calling run() again starts
a fresh attempt from Idle.

Wire contract:
    POST {relay_url}  {"capabilities": "..."}
      -> {"id": str, "approvalUrl": str, "statusUrl": str}
    GET  {statusUrl}
      -> {"status": "pending" | "approved" | "denied" | "expired",
          "session": str, "pubkey": str, "capabilities": [str]}
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from connectors.http_transport import HttpTransport
from storage.records import Session, now_ms
from storage.session_store import SessionStore
from utils.errors import AuthDenied, AuthTimeout, RelayUnavailable

logger = logging.getLogger(__name__)

API_NAME = "relay"

DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_DEADLINE_SECONDS = 180.0

ApprovalCallback = Callable[[str], Union[None, Awaitable[None]]]


class HandshakeState(str, Enum):
    IDLE = "idle"
    REQUEST_CREATED = "request_created"
    POLLING = "polling"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    HandshakeState.APPROVED,
    HandshakeState.DENIED,
    HandshakeState.EXPIRED,
    HandshakeState.TIMED_OUT,
})


@dataclass(frozen=True)
class AuthRequest:
    """One handshake attempt. Discarded once a terminal state is reached."""
    id: str
    approval_url: str
    status_url: str
    created_at: int  # epoch ms
    deadline: float  # handshake clock (monotonic) seconds


def _log_approval_url(url: str) -> None:
    logger.info(f"Approve sign-in at: {url}")


class AuthorizationHandshake:
    """
    Negotiates a session with the user's identity provider via the relay.

    Args:
        transport: Shared HTTP transport
        relay_url: Relay endpoint that mints auth requests
        capabilities: Capability string requested from the identity provider
        session_store: Where an approved session is persisted
        poll_interval: Seconds between status polls
        deadline_seconds: Wall-clock budget for the whole handshake
        on_approval_url: UI surface for the approval URL (sync or async)
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        transport: HttpTransport,
        relay_url: str,
        capabilities: str,
        session_store: SessionStore,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
        on_approval_url: Optional[ApprovalCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.relay_url = relay_url
        self.capabilities = capabilities
        self.session_store = session_store
        self.poll_interval = poll_interval
        self.deadline_seconds = deadline_seconds
        self.on_approval_url = on_approval_url or _log_approval_url
        self._clock = clock
        self.state = HandshakeState.IDLE
        self.request: Optional[AuthRequest] = None

    async def run(self) -> Session:
        """
        Run one full handshake attempt.

        Returns:
            The approved Session (already persisted)

        Raises:
            RelayUnavailable: relay refused or returned an incomplete request
            AuthDenied: user denied, or the relay expired the request
            AuthTimeout: deadline passed before a terminal state
        """
        request = await self.begin()
        return await self.complete(request)

    async def begin(self) -> AuthRequest:
        """Idle -> RequestCreated -> Polling: mint the request and surface it."""
        self.state = HandshakeState.IDLE
        self.request = None
        started = self._clock()

        request = await self._create_request(started + self.deadline_seconds)
        self.request = request
        self.state = HandshakeState.REQUEST_CREATED
        logger.info(f"Auth request {request.id} created")

        try:
            result = self.on_approval_url(request.approval_url)
            if inspect.isawaitable(result):
                await result
        except BaseException:
            self._reset()
            raise

        self.state = HandshakeState.POLLING
        return request

    async def complete(self, request: AuthRequest) -> Session:
        """Poll an already-surfaced request until it reaches a terminal state."""
        try:
            return await self._poll(request)
        except asyncio.CancelledError:
            self._reset()
            raise
        finally:
            self.request = None

    def _reset(self) -> None:
        self.state = HandshakeState.IDLE
        self.request = None

    async def _create_request(self, deadline: float) -> AuthRequest:
        try:
            response = await self.transport.post(
                self.relay_url,
                API_NAME,
                json={"capabilities": self.capabilities},
            )
        except httpx.HTTPError as exc:
            raise RelayUnavailable(f"Relay unreachable: {exc!r}") from exc

        if not response.is_success:
            raise RelayUnavailable(
                f"Relay returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise RelayUnavailable(
                "Relay returned an unparseable response",
                status_code=response.status_code,
            ) from exc

        if not isinstance(body, dict):
            raise RelayUnavailable("Relay response is not an object", response.status_code)

        missing = [k for k in ("id", "approvalUrl", "statusUrl") if not body.get(k)]
        if missing:
            raise RelayUnavailable(
                f"Relay response missing {', '.join(missing)}",
                status_code=response.status_code,
            )

        return AuthRequest(
            id=str(body["id"]),
            approval_url=str(body["approvalUrl"]),
            status_url=str(httpx.URL(self.relay_url).join(str(body["statusUrl"]))),
            created_at=now_ms(),
            deadline=deadline,
        )

    async def _poll(self, request: AuthRequest) -> Session:
        self.state = HandshakeState.POLLING

        while True:
            remaining = request.deadline - self._clock()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.poll_interval, remaining))

            remaining = request.deadline - self._clock()
            if remaining <= 0:
                break

            try:
                body = await asyncio.wait_for(self._fetch_status(request), timeout=remaining)
            except (httpx.HTTPError, asyncio.TimeoutError, ValueError) as exc:
                logger.warning(f"Auth status poll failed, retrying: {exc!r}")
                continue

            if body is None:
                continue

            status = str(body.get("status") or "pending").lower()

            if status == "approved":
                session = self._session_from(body)
                if session is None:
                    logger.warning("Relay reported approval without session or identity")
                    continue
                await self.session_store.save(session)
                self.state = HandshakeState.APPROVED
                logger.info(f"Auth request {request.id} approved for {session.identity}")
                return session

            if status in ("denied", "expired"):
                self.state = (
                    HandshakeState.DENIED if status == "denied" else HandshakeState.EXPIRED
                )
                logger.info(f"Auth request {request.id} {status}")
                raise AuthDenied(status)

        self.state = HandshakeState.TIMED_OUT
        logger.warning(f"Auth request {request.id} timed out")
        raise AuthTimeout(self.deadline_seconds)

    async def _fetch_status(self, request: AuthRequest) -> Optional[Dict[str, Any]]:
        response = await self.transport.get(request.status_url, API_NAME)
        if not response.is_success:
            logger.warning(f"Auth status poll returned {response.status_code}")
            return None
        body = response.json()
        return body if isinstance(body, dict) else None

    def _session_from(self, body: Dict[str, Any]) -> Optional[Session]:
        token = body.get("session")
        identity = body.get("pubkey") or body.get("pubky") or body.get("identity")
        if not token or not identity:
            return None
        capabilities = body.get("capabilities") or [
            c for c in self.capabilities.split(",") if c
        ]
        if isinstance(capabilities, str):
            capabilities = [c for c in capabilities.split(",") if c]
        return Session(
            token=str(token),
            identity=str(identity),
            capabilities=tuple(capabilities),
        )
