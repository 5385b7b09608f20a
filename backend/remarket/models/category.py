"""
Remarket Backend - Category Model
===================================

What:  ORM model for the `categories` table (a tree via parent_id).
Who:   category_service, listing_service (category existence on create).

`slug` is derived from `name` on every write; `code` is an optional
externally assigned key with a UNIQUE constraint.
"""

from typing import Optional

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from remarket.database import Base
from remarket.identifiers import ID_LENGTH
from remarket.models.common import IdentityMixin, SoftDeleteMixin, TimestampMixin


class Category(IdentityMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    slug: Mapped[str] = mapped_column(String(64), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(256), nullable=True, unique=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(ID_LENGTH), ForeignKey("categories.id"), nullable=True
    )
    image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    __table_args__ = (
        Index("idx_categories_slug", "slug"),
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, slug='{self.slug}')>"
