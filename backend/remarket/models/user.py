"""
Remarket Backend - User Model
===============================

What:  ORM model for the `users` table and the `user_favorites` association.
Who:   user_service (accounts, favorites, admin management), auth
       dependencies (current user lookup), dashboard_service.

Table Design:
    - email is UNIQUE; duplicate registrations surface as ConflictError
    - role: 'client' (ordinary) or 'admin' (privileged)
    - refresh_token holds the single refresh token currently honoured;
      logout clears it and refresh must match it
    - users are never hard-deleted, only flagged `destroyed`
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from remarket.database import Base
from remarket.identifiers import ID_LENGTH
from remarket.models.common import IdentityMixin, SoftDeleteMixin, TimestampMixin, utcnow

ROLE_CLIENT = "client"
ROLE_ADMIN = "admin"
USER_ROLES = (ROLE_CLIENT, ROLE_ADMIN)
GENDERS = ("MALE", "FEMALE", "OTHER")


class User(IdentityMixin, TimestampMixin, SoftDeleteMixin, Base):
    """A marketplace account (buyer and seller are the same account)."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_CLIENT)

    # ── Profile ───────────────────────────────────────────────────────────
    avatar_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # ── Account State ─────────────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    verify_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_users_created_at", "created_at"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


# A user's favorites form a set: the composite primary key rejects duplicates.
user_favorites = Table(
    "user_favorites",
    Base.metadata,
    Column("user_id", String(ID_LENGTH), ForeignKey("users.id"), primary_key=True),
    Column("listing_id", String(ID_LENGTH), ForeignKey("listings.id"), primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
