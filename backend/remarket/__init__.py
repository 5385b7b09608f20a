"""
Remarket Backend - Application Package
========================================

What: Marketplace REST API (users, listings, categories, reviews, messaging)
      plus a Socket.IO channel that pushes new messages to connected users.
Who:  Imported by uvicorn (`remarket.main:app`), Alembic and pytest.

Layering:

    ┌─────────────────────────────────────┐
    │      Routes (FastAPI routers)       │  ← HTTP + auth dependencies
    ├─────────────────────────────────────┤
    │   Services (business operations)    │  ← resolver, message store,
    │                                     │    view dedup, query engine
    ├─────────────────────────────────────┤
    │  Gateway + Models + Schemas (data)  │  ← SQLAlchemy ORM + pydantic
    ├─────────────────────────────────────┤
    │     Database (async sessions)       │
    └─────────────────────────────────────┘
             ▲
             │ notify after commit
    ┌─────────────────────────────────────┐
    │  Realtime (Socket.IO rooms/user id) │
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
