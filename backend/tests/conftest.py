"""
Remarket Backend - Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite,
       StaticPool so all sessions share the one connection) with the full
       schema created from the models. Factories build users, categories
       and listings through the gateway, so test data passes the same
       validation as production data.

Fixture Hierarchy:
    engine ── session_factory ─┬─ db_session ── make_user / make_category / make_listing
                               └─ app ── client
    mock_db_session: AsyncMock session for error-translation tests
"""

import itertools
import os

# Settings are read at import time: configure before importing remarket
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret-0123456789abcdef"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret-0123456789abcdef"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["COOKIE_SECURE"] = "false"
os.environ["COOKIE_SAMESITE"] = "lax"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import remarket.models  # noqa: E402,F401
from remarket import gateway  # noqa: E402
from remarket.database import Base, get_db_session  # noqa: E402
from remarket.security import create_access_token, hash_password  # noqa: E402

DEFAULT_PASSWORD = "correct-horse-42"

_sequence = itertools.count(1)


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession for tests that only care how errors are translated.

    Usage:
        mock_db_session.execute.side_effect = OperationalError(...)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_user(db_session):
    async def _make(
        email: Optional[str] = None,
        username: Optional[str] = None,
        role: str = "client",
        is_active: bool = True,
        password: str = DEFAULT_PASSWORD,
        **extra,
    ):
        n = next(_sequence)
        return await gateway.users.create_new(
            db_session,
            {
                "email": email or f"user{n}@remarket.io",
                "username": username or f"user{n}",
                "display_name": extra.pop("display_name", None) or f"User {n}",
                "password_hash": await hash_password(password),
                "role": role,
                "is_active": is_active,
                **extra,
            },
        )
    return _make


@pytest.fixture
def make_category(db_session):
    async def _make(name: Optional[str] = None, **extra):
        n = next(_sequence)
        name = name or f"Category {n}"
        return await gateway.categories.create_new(
            db_session,
            {"name": name, "slug": name.lower().replace(" ", "-"), **extra},
        )
    return _make


@pytest.fixture
def make_listing(db_session, make_category):
    async def _make(seller, category=None, **extra):
        category = category or await make_category()
        values = {
            "seller_id": seller.id,
            "category_id": category.id,
            "title": "Vintage road bike",
            "description": "Steel frame, recently serviced, new tyres.",
            "price": 250.0,
            "status": "PUBLISHED",
        }
        values.update(extra)
        return await gateway.listings.create_new(db_session, values)
    return _make


@pytest.fixture
def auth_headers():
    """Bearer header for a user: `headers=auth_headers(user)`."""
    def _headers(user) -> dict:
        token = create_access_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(session_factory):
    """FastAPI app wired to the per-test database."""
    from remarket.main import create_app

    application = create_app()

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_db_session
    return application


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        response = await client.get("/health")
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
