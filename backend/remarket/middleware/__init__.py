"""
Remarket Backend - Middleware Package
=======================================

What:  Cross-cutting concerns applied to every HTTP request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    Rate limiting runs first so rejected requests cost nothing. The request
    ID is assigned before logging so every access line carries it.

Socket.IO traffic is routed by socketio.ASGIApp before it reaches FastAPI,
so none of this applies to the realtime channel.
"""

from remarket.middleware.logging import RequestLoggingMiddleware
from remarket.middleware.rate_limit import RateLimitMiddleware, SlidingWindowLimiter
from remarket.middleware.request_id import RequestIDMiddleware, RequestIdLogFilter, request_id_var

__all__ = [
    "RateLimitMiddleware",
    "RequestIDMiddleware",
    "RequestIdLogFilter",
    "RequestLoggingMiddleware",
    "SlidingWindowLimiter",
    "request_id_var",
]
