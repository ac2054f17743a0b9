"""
Per-API Rate Limiter for the Graphiti client.

Provides token-bucket style rate limiting with:
- Per-API rate limits (central index, personal stores, auth relay)
- Async-safe implementation using asyncio.Lock
- Pool owned by the client so limits don't leak between client instances

Usage:
    from utils.rate_limiter import RateLimiterPool

    pool = RateLimiterPool()
    limiter = pool.get("nexus")

    # Before making an API call
    await limiter.acquire()
    response = await client.get(url)

API Limits:
    - Nexus (central index): 30/second
    - Homeserver (personal stores): 10/second
    - Relay: unlimited (the handshake polls at its own fixed interval)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class AsyncRateLimiter:
    """
    Async rate limiter using token bucket algorithm.

    Tokens are refilled over time based on the configured rate.
    Callers wait if no tokens are available.

    Args:
        rate: Maximum requests per period (None = unlimited)
        period: Time period in seconds
    """

    def __init__(self, rate: Optional[int] = None, period: int = 1):
        self.rate = rate
        self.period = period
        self._lock = asyncio.Lock()
        self._tokens: float = float(rate) if rate else float("inf")
        self._last_refill: Optional[float] = None

    async def acquire(self) -> None:
        """
        Acquire permission to make a request.

        Blocks until a token is available (rate limit allows).
        For unlimited limiters (rate=None), returns immediately.
        """
        if self.rate is None:
            return

        async with self._lock:
            now = time.monotonic()

            if self._last_refill is None:
                self._last_refill = now
                self._tokens = float(self.rate)

            elapsed = now - self._last_refill
            refill_amount = elapsed * (self.rate / self.period)
            self._tokens = min(self.rate, self._tokens + refill_amount)
            self._last_refill = now

            if self._tokens < 1:
                wait_time = (1 - self._tokens) * (self.period / self.rate)
                logger.debug(f"Rate limit: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
                self._tokens = 1
                self._last_refill = time.monotonic()

            self._tokens -= 1


class RateLimiterPool:
    """
    Factory for per-API rate limiters.

    Creates limiters on demand with the configured limits for each API.
    """

    API_LIMITS: Dict[str, Dict[str, Optional[int]]] = {
        "nexus": {"rate": 30, "period": 1},        # 30/second
        "homeserver": {"rate": 10, "period": 1},   # 10/second
        "relay": {"rate": None, "period": 1},      # Unlimited
    }

    def __init__(self, overrides: Optional[Dict[str, Dict[str, Optional[int]]]] = None):
        self._limits = {**self.API_LIMITS, **(overrides or {})}
        self._limiters: Dict[str, AsyncRateLimiter] = {}

    def get(self, api_name: str) -> AsyncRateLimiter:
        """
        Get or create rate limiter for an API.

        Unknown APIs get an unlimited limiter.
        """
        if api_name not in self._limiters:
            limits = self._limits.get(api_name, {"rate": None, "period": 1})
            self._limiters[api_name] = AsyncRateLimiter(
                rate=limits["rate"],
                period=limits["period"],
            )
            if limits["rate"]:
                logger.debug(
                    f"Created rate limiter for {api_name}: "
                    f"{limits['rate']} requests per {limits['period']}s"
                )

        return self._limiters[api_name]
