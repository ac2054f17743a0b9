"""
Tests for per-API rate limiter.
"""

import asyncio
import time

import pytest

from utils.rate_limiter import AsyncRateLimiter, RateLimiterPool


class TestAsyncRateLimiter:
    """Test AsyncRateLimiter class"""

    def test_rate_limiter_init(self):
        """AsyncRateLimiter should accept rate and period"""
        limiter = AsyncRateLimiter(rate=10, period=1)
        assert limiter.rate == 10
        assert limiter.period == 1

    def test_rate_limiter_unlimited(self):
        """AsyncRateLimiter with rate=None should be unlimited"""
        limiter = AsyncRateLimiter(rate=None, period=1)
        assert limiter.rate is None

    @pytest.mark.asyncio
    async def test_acquire_returns_quickly_under_limit(self):
        """acquire() should return immediately when under rate limit"""
        limiter = AsyncRateLimiter(rate=100, period=1)

        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()
        elapsed = time.monotonic() - start

        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_acquire_throttles_when_exceeded(self):
        """acquire() should throttle when rate limit exceeded"""
        # 2 requests per second
        limiter = AsyncRateLimiter(rate=2, period=1)

        start = time.monotonic()
        for _ in range(3):
            await limiter.acquire()
        elapsed = time.monotonic() - start

        # Third request should wait ~0.5 seconds
        assert elapsed >= 0.3

    @pytest.mark.asyncio
    async def test_unlimited_never_throttles(self):
        """Unlimited limiter should never throttle"""
        limiter = AsyncRateLimiter(rate=None, period=1)

        start = time.monotonic()
        for _ in range(100):
            await limiter.acquire()
        elapsed = time.monotonic() - start

        assert elapsed < 0.1


class TestRateLimiterPool:
    """Test RateLimiterPool factory"""

    def test_pool_get_returns_same_limiter(self):
        """get() should return the same limiter for same API"""
        pool = RateLimiterPool()
        assert pool.get("nexus") is pool.get("nexus")

    def test_pool_get_different_apis(self):
        """get() should return different limiters for different APIs"""
        pool = RateLimiterPool()
        assert pool.get("nexus") is not pool.get("homeserver")

    def test_pool_has_api_limits(self):
        """Index 30/s, stores 10/s, relay unlimited"""
        pool = RateLimiterPool()

        nexus = pool.get("nexus")
        assert nexus.rate == 30
        assert nexus.period == 1

        homeserver = pool.get("homeserver")
        assert homeserver.rate == 10
        assert homeserver.period == 1

        assert pool.get("relay").rate is None

    def test_pool_unknown_api_unlimited(self):
        """Unknown API should get unlimited limiter"""
        pool = RateLimiterPool()
        assert pool.get("unknown_api").rate is None

    def test_pool_overrides(self):
        """Overrides replace default limits"""
        pool = RateLimiterPool(overrides={"nexus": {"rate": 1, "period": 5}})
        assert pool.get("nexus").rate == 1
        assert pool.get("nexus").period == 5
        assert pool.get("homeserver").rate == 10

    def test_pools_are_independent(self):
        """Two pools never share limiters"""
        assert RateLimiterPool().get("nexus") is not RateLimiterPool().get("nexus")


class TestConcurrentAccess:
    """Test concurrent access"""

    @pytest.mark.asyncio
    async def test_concurrent_acquire(self):
        """Multiple concurrent acquires should be safe"""
        limiter = AsyncRateLimiter(rate=10, period=1)
        results = []

        async def acquire_and_record(id: int):
            await limiter.acquire()
            results.append(id)

        await asyncio.gather(*[acquire_and_record(i) for i in range(5)])

        assert sorted(results) == [0, 1, 2, 3, 4]
