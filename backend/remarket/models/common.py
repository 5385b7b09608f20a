"""
Remarket Backend - Shared Model Columns
=========================================

What:  Column mixins shared by every collection table: the 24-hex id,
       creation/update timestamps and the soft-delete flag.
How:   Declarative mixins; SQLAlchemy copies the columns into each table.
Who:   Every model in remarket.models.

Timestamps are timezone-aware UTC. SQLite hands them back naive, so code
that compares datetimes in Python goes through `as_utc`.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, false, func
from sqlalchemy.orm import Mapped, mapped_column

from remarket.identifiers import ID_LENGTH, new_object_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attaches UTC to naive datetimes (SQLite) and leaves aware ones alone."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class IdentityMixin:
    # ── Primary Key ───────────────────────────────────────────────────────
    # 24-hex ObjectId-style id generated in Python, so the id is known
    # before the INSERT is flushed.
    id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        primary_key=True,
        default=new_object_id,
        comment="24-hex identifier (timestamp prefix + random bytes)",
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )


class SoftDeleteMixin:
    # Soft-deleted rows stay in the table and are filtered out of reads
    destroyed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
