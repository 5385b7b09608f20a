"""
Remarket Backend - Review Model
=================================

What:  ORM model for the `reviews` table (a rating 1-5 plus optional comment
       left by a user on a listing).
Who:   review_service.
"""

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from remarket.database import Base
from remarket.identifiers import ID_LENGTH
from remarket.models.common import IdentityMixin, SoftDeleteMixin, TimestampMixin


class Review(IdentityMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "reviews"

    listing_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("listings.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_reviews_listing_created", "listing_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, listing_id={self.listing_id}, rating={self.rating})>"
