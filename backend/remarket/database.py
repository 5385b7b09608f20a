"""
Remarket Backend - Database Session Management
================================================

What:  Async SQLAlchemy engine, session factory, declarative base and the
       FastAPI session dependency.
How:   One async engine per process. Sessions are created per request and
       commit on success / roll back on error.
Who:   Route handlers (via Depends), services (receive the session), Alembic
       (reads `Base.metadata`), tests (override `get_db_session`).
When:  Engine is created at module import; sessions are created per request.

Connection Pooling (PostgreSQL):
    pool_size=20       persistent connections
    max_overflow=10    burst connections (total max = 30)
    pool_pre_ping      validates connections before use
    pool_recycle=3600  recycles connections hourly

SQLite URLs skip the pool options; aiosqlite uses its own pool class.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from remarket.config import settings


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **_engine_options())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after commit without a
# lazy refresh, which would need an implicit await.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object so Alembic autogenerate and the test
    `create_all` see every table.
    """
    pass


# ── Dialect Helpers ───────────────────────────────────────────────────────
def insert_ignoring_conflicts(session: AsyncSession, table, index_elements):
    """
    Builds `INSERT ... ON CONFLICT (<index_elements>) DO NOTHING` for the
    dialect the session is bound to.

    Used wherever a unique constraint decides the winner between concurrent
    writers (conversation pair keys, listing view rows, favorites). Both
    PostgreSQL and SQLite support the clause and `RETURNING`.
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        stmt = postgresql.insert(table)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(table)
    else:
        raise NotImplementedError(f"ON CONFLICT is not supported for dialect '{dialect_name}'")
    return stmt.on_conflict_do_nothing(index_elements=index_elements)


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global handlers
        5. Always: closes the session (returns the connection to the pool)

    Services that must publish a side effect only after their write is
    durable (message send) commit explicitly; the trailing commit here is
    then a no-op.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def create_tables() -> None:
    """Creates missing tables. Only used when DB_CREATE_TABLES is set."""
    # Imported for its side effect of registering every model on Base.metadata
    import remarket.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
