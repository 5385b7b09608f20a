"""
Remarket Backend - Rate Limiter Tests
=======================================

What we test:
    ✅ Requests inside the limit pass, the next one gets a retry delay
    ✅ The window slides: old hits expire
    ✅ Keys are independent, rejected hits are not recorded
    ✅ Middleware: 429 with Retry-After, excluded paths never limited
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from remarket.middleware import RateLimitMiddleware, SlidingWindowLimiter


class TestSlidingWindowLimiter:

    def test_limit_reached(self):
        limiter = SlidingWindowLimiter(limit=3, window=60)

        assert [limiter.hit("1.2.3.4", now=100 + i) for i in range(3)] == [None, None, None]
        assert limiter.hit("1.2.3.4", now=110) == 51

    def test_window_slides(self):
        limiter = SlidingWindowLimiter(limit=2, window=10)
        limiter.hit("ip", now=0)
        limiter.hit("ip", now=5)

        assert limiter.hit("ip", now=9) is not None
        assert limiter.hit("ip", now=10.5) is None
        assert limiter.hit("ip", now=11) is not None

    def test_keys_are_independent(self):
        limiter = SlidingWindowLimiter(limit=1, window=60)

        assert limiter.hit("a", now=0) is None
        assert limiter.hit("b", now=0) is None
        assert limiter.hit("a", now=1) is not None
        assert len(limiter) == 2

    def test_rejected_hits_not_recorded(self):
        limiter = SlidingWindowLimiter(limit=1, window=10)
        limiter.hit("ip", now=0)
        for t in range(1, 9):
            limiter.hit("ip", now=t)

        assert limiter.hit("ip", now=10.5) is None


class TestRateLimitMiddleware:

    def setup_method(self):
        app = FastAPI()

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        app.add_middleware(RateLimitMiddleware, limiter=SlidingWindowLimiter(limit=2, window=60))
        self.app = app

    @pytest.mark.asyncio
    async def test_third_request_limited(self):
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [(await client.get("/ping")).status_code for _ in range(2)]
            limited = await client.get("/ping")

        assert statuses == [200, 200]
        assert limited.status_code == 429
        assert int(limited.headers["Retry-After"]) >= 1
        assert limited.json()["error"] == "rate_limit_exceeded"

    @pytest.mark.asyncio
    async def test_health_not_limited(self):
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = {(await client.get("/health")).status_code for _ in range(5)}

        assert statuses == {200}
