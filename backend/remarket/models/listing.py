"""
Remarket Backend - Listing Model
==================================

What:  ORM model for the `listings` table and the `listing_views` table that
       records which users have already been counted as viewers.
Who:   listing_service (CRUD, view counting, moderation), listing_query
       (search), dashboard_service, review/user services (existence checks).

View Counting:
    `listing_views(listing_id, viewer_id)` has a composite primary key, so a
    viewer can be counted at most once per listing. `views` is incremented
    only in the transaction that inserted the view row, which keeps
    `views == count(listing_views for the listing)`.

Query Patterns:
    - Public search: WHERE status='PUBLISHED' AND NOT destroyed ORDER BY ...
      → idx_listings_status_created
    - Seller's own listings: WHERE seller_id = :id → idx_listings_seller
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from remarket.database import Base
from remarket.identifiers import ID_LENGTH
from remarket.models.common import IdentityMixin, SoftDeleteMixin, TimestampMixin, utcnow

# ── Enumerations ──────────────────────────────────────────────────────────
STATUS_PENDING = "PENDING"
STATUS_PUBLISHED = "PUBLISHED"
STATUS_EXPIRED = "EXPIRED"
STATUS_DELETED = "DELETED"
STATUS_REJECTED = "REJECTED"
LISTING_STATUSES = (
    STATUS_PENDING,
    STATUS_PUBLISHED,
    STATUS_EXPIRED,
    STATUS_DELETED,
    STATUS_REJECTED,
)

LISTING_CONDITIONS = ("new", "like_new", "used")


class Listing(IdentityMixin, TimestampMixin, SoftDeleteMixin, Base):
    """
    An item offered for sale.

    Lifecycle:
        PENDING (on create) → PUBLISHED | REJECTED (admin moderation)
        → EXPIRED (admin) | DELETED (owner soft delete)
    """

    __tablename__ = "listings"

    # Immutable after creation; the gateway strips it from update patches
    seller_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id"), nullable=False
    )
    category_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("categories.id"), nullable=False
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    condition: Mapped[str] = mapped_column(String(20), nullable=False, default="used")
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Moderation ────────────────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_PENDING,
        server_default=text(f"'{STATUS_PENDING}'"),
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Counters / flags ──────────────────────────────────────────────────
    views: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    is_featured: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("idx_listings_status_created", "status", "created_at"),
        Index("idx_listings_seller", "seller_id"),
        Index("idx_listings_category", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, status='{self.status}', views={self.views})>"


listing_views = Table(
    "listing_views",
    Base.metadata,
    Column("listing_id", String(ID_LENGTH), ForeignKey("listings.id"), primary_key=True),
    Column("viewer_id", String(ID_LENGTH), ForeignKey("users.id"), primary_key=True),
    Column("viewed_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
