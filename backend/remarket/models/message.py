"""
Remarket Backend - Message Model
==================================

What:  ORM model for the append-only `messages` table.
Who:   message_service (append, history), conversation_service (last message).

Messages are never updated or deleted. Content is any combination of text,
an image URL and a geolocation (latitude + longitude, both or neither);
at least one must be present.

Query Pattern:
    History: WHERE conversation_id = :id ORDER BY created_at, id
    → idx_messages_conversation_created
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, String, Text, false, func
from sqlalchemy.orm import Mapped, mapped_column

from remarket.database import Base
from remarket.identifiers import ID_LENGTH
from remarket.models.common import IdentityMixin, utcnow


class Message(IdentityMixin, Base):
    __tablename__ = "messages"

    conversation_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("conversations.id"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id"), nullable=False
    )
    receiver_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id"), nullable=False
    )

    # ── Content ───────────────────────────────────────────────────────────
    text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    is_read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_messages_conversation_created", "conversation_id", "created_at", "id"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conversation_id={self.conversation_id})>"
