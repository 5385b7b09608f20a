"""
Remarket Backend - Rate Limiting Middleware
=============================================

What:  Per-IP sliding window rate limiter.
How:   `SlidingWindowLimiter` keeps the timestamps of each client's requests
       inside the window; a request is rejected once the window is full,
       with Retry-After set to when the oldest timestamp leaves it.

Excluded: the health probe, API docs and the Socket.IO endpoint.

In-memory and per process. Behind several workers each one enforces the
limit on its own share of traffic.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from remarket.config import settings
from remarket.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

CLEANUP_EVERY = 1000


class SlidingWindowLimiter:
    """
    Args:
        limit:   requests allowed per window
        window:  window length in seconds
    """

    def __init__(self, limit: int, window: float):
        self.limit = limit
        self.window = window
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._calls = 0

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """
        Records a request for `key`.

        Returns None when allowed, otherwise the seconds to wait before
        retrying (the rejected request is not recorded).
        """
        now = time.time() if now is None else now
        window_start = now - self.window
        hits = self._hits[key]
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= self.limit:
            return int(hits[0] + self.window - now) + 1

        hits.append(now)
        self._calls += 1
        if self._calls % CLEANUP_EVERY == 0:
            self._cleanup(window_start)
        return None

    def _cleanup(self, window_start: float) -> None:
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in idle:
            del self._hits[key]
        if idle:
            logger.debug("Dropped %d idle rate limit entries", len(idle))

    def __len__(self) -> int:
        return len(self._hits)


class RateLimitMiddleware(BaseHTTPMiddleware):
    EXCLUDED_PATHS = frozenset({"/health", "/docs", "/openapi.json", "/redoc"})

    def __init__(self, app, limiter: Optional[SlidingWindowLimiter] = None, **kwargs):
        super().__init__(app, **kwargs)
        self.limiter = limiter or SlidingWindowLimiter(
            settings.rate_limit_requests, settings.rate_limit_window
        )
        self.socketio_prefix = "/" + settings.socketio_path.strip("/")

    def _excluded(self, path: str) -> bool:
        return path in self.EXCLUDED_PATHS or path.startswith(self.socketio_prefix)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if self._excluded(request.url.path):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        retry_after = self.limiter.hit(client_ip)
        if retry_after is not None:
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ss window",
                client_ip,
                self.limiter.limit,
                self.limiter.window,
            )
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": getattr(request.state, "request_id", None),
                },
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
