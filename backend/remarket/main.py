"""
Remarket Backend - Application Factory
========================================

What:  Creates and configures the FastAPI application and mounts Socket.IO
       next to it.
How:   `create_app()` builds the FastAPI instance together with its realtime
       collaborators (connection registry, Socket.IO server, notifier) and
       stores them on `app.state`. `create_asgi_app()` wraps it in
       `socketio.ASGIApp`, which answers /socket.io itself and forwards
       everything else (including lifespan events) to FastAPI.
Who:   uvicorn (`uvicorn remarket.main:app`), the test suite (create_app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │ socketio.ASGIApp                                         │
    │   /socket.io ──► AsyncServer (connect auth, rooms)       │
    │   everything else ──► FastAPI                            │
    │                                                          │
    │   Middleware: RateLimit → RequestID → Logging → GZip → CORS
    │   Routers:    users, listings, categories, reviews,      │
    │               messages, dashboard, health                │
    │   app.state:  registry, sio, notifier                    │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration warnings, optional create_all
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import socketio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from remarket import __version__
from remarket.config import settings
from remarket.database import create_tables, dispose_engine
from remarket.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    RateLimitExceededError,
    RemarketError,
    ValidationError,
)
from remarket.middleware import (
    RateLimitMiddleware,
    RequestIDMiddleware,
    RequestIdLogFilter,
    RequestLoggingMiddleware,
    request_id_var,
)
from remarket.realtime import (
    ConnectionRegistry,
    InMemoryConnectionRegistry,
    RealtimeNotifier,
    create_socket_server,
)
from remarket.routes import categories, dashboard, health, listings, messages, reviews, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configures the root logger once at startup.

    Format: 2024-01-15T12:00:00 [INFO] remarket.services.x [a1b2c3d4] message
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "socketio", "engineio", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Remarket Backend %s starting up...", __version__)

    # Misconfiguration is reported, not fatal: health checks keep working
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.warning("Configuration warning: %s", str(e))

    if settings.db_create_tables:
        await create_tables()
        logger.info("Database tables ensured (DB_CREATE_TABLES=true)")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Remarket Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# Client errors: message and context are safe to return
CLIENT_ERRORS = (
    (ValidationError, 422, "validation_error"),
    (AuthenticationError, 401, "authentication_error"),
    (AuthorizationError, 403, "authorization_error"),
    (NotFoundError, 404, "not_found"),
    (ConflictError, 409, "conflict"),
)


def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details or None,
        "request_id": request_id_var.get("") or None,
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Maps the exception hierarchy to HTTP responses.

        ValidationError / RequestValidationError → 422
        AuthenticationError                      → 401
        AuthorizationError                       → 403
        NotFoundError                            → 404
        ConflictError                            → 409
        RateLimitExceededError                   → 429 (+ Retry-After)
        DatabaseError / RemarketError / other    → 500, generic message

    Server-side errors never expose SQL, stack traces or context; those are
    logged with the request id instead.
    """

    def client_error_handler(status_code: int, error: str):
        async def handle(request: Request, exc: RemarketError):
            logger.info("%s: %s", error, exc.message)
            return JSONResponse(
                status_code=status_code,
                content=_error_body(error, exc.message, exc.context),
            )
        return handle

    for exc_type, status_code, error in CLIENT_ERRORS:
        app.add_exception_handler(exc_type, client_error_handler(status_code, error))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", "invalid value"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_body("validation_error", "Request validation failed", {"errors": errors}),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body("rate_limit_exceeded", exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(RemarketError)
    async def handle_remarket_error(request: Request, exc: RemarketError):
        logger.error("Unhandled application error: %s | Context: %s", exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(registry: Optional[ConnectionRegistry] = None) -> FastAPI:
    """
    Assembles the FastAPI application and its realtime collaborators.

    Args:
        registry: connection registry to use; a fresh in-memory one when omitted
    """
    app = FastAPI(
        title="Remarket API",
        description="Marketplace backend: listings, categories, reviews and direct messaging.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Realtime ──────────────────────────────────────────────────────────
    registry = registry if registry is not None else InMemoryConnectionRegistry()
    sio = create_socket_server(
        registry,
        cors_origins=settings.cors_origins_list,
        message_queue=settings.socketio_message_queue,
    )
    app.state.registry = registry
    app.state.sio = sio
    app.state.notifier = RealtimeNotifier(
        sio, registry, echo_to_sender=settings.realtime_echo_to_sender
    )

    # ── Middleware (last added runs first) ────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(users.router)
    app.include_router(listings.router)
    app.include_router(categories.router)
    app.include_router(reviews.router)
    app.include_router(messages.router)
    app.include_router(dashboard.router)
    app.include_router(health.router)

    return app


def create_asgi_app(fastapi_app: Optional[FastAPI] = None) -> socketio.ASGIApp:
    """Wraps the FastAPI app so /socket.io is served by its AsyncServer."""
    fastapi_app = fastapi_app or create_app()
    return socketio.ASGIApp(
        fastapi_app.state.sio,
        other_asgi_app=fastapi_app,
        socketio_path=settings.socketio_path,
    )


# ── Application Instance ─────────────────────────────────────────────────
app = create_asgi_app()
