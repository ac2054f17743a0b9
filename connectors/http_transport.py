"""
Shared HTTP transport for pooled connections and per-API rate limiting.

Unlike a typical API client this transport does not retry or raise on HTTP
status: callers decide what a non-success status means (an absent peer
record, a rejected write, a relay outage).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from utils.rate_limiter import RateLimiterPool

logger = logging.getLogger(__name__)


class HttpTransport:
    """
    Shared transport for the index, personal stores and the auth relay.

    Call start() and shutdown() in long-running processes to reuse the client.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        limiters: Optional[RateLimiterPool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        limits: Optional[httpx.Limits] = None,
        user_agent: str = "graphiti-client",
    ):
        self.timeout = httpx.Timeout(timeout_seconds)
        self.user_agent = user_agent
        self._limiters = limiters or RateLimiterPool()
        self._transport = transport
        self._limits = limits or httpx.Limits(
            max_connections=20,
            max_keepalive_connections=10,
        )
        self._client: Optional[httpx.AsyncClient] = None
        self._start_lock = asyncio.Lock()

    async def start(self) -> None:
        """Initialize the shared HTTP client."""
        if self._client and not self._client.is_closed:
            return

        async with self._start_lock:
            if self._client and not self._client.is_closed:
                return
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
                limits=self._limits,
                transport=self._transport,
                follow_redirects=True,
            )

    async def shutdown(self) -> None:
        """Close the shared HTTP client."""
        if not self._client:
            return
        await self._client.aclose()
        self._client = None

    async def request(
        self,
        method: str,
        url: str,
        api: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        bearer: Optional[str] = None,
    ) -> httpx.Response:
        """
        Send a request and return the raw response.

        Raises:
            httpx.HTTPError: on transport failure (connect, timeout, ...)
        """
        if not self._client or self._client.is_closed:
            await self.start()

        if not self._client:
            raise RuntimeError("HttpTransport client not initialized")

        headers = {"Accept": "application/json"}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"

        await self._limiters.get(api).acquire()
        response = await self._client.request(
            method=method.upper(),
            url=url,
            json=json,
            params=params,
            headers=headers,
        )
        logger.debug(f"{method.upper()} {url} -> {response.status_code}")
        return response

    async def get(
        self,
        url: str,
        api: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Convenience wrapper for GET."""
        return await self.request("GET", url, api, params=params)

    async def put(
        self,
        url: str,
        api: str,
        json: Any,
        bearer: Optional[str] = None,
    ) -> httpx.Response:
        """Convenience wrapper for PUT."""
        return await self.request("PUT", url, api, json=json, bearer=bearer)

    async def post(
        self,
        url: str,
        api: str,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        """Convenience wrapper for POST."""
        return await self.request("POST", url, api, json=json)
