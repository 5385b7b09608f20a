"""
Remarket Backend - Conversation Model
=======================================

What:  ORM model for the `conversations` table: one row per unordered pair
       of users.
How:   `pair_key` is the canonical "min:max" form of the two participant ids
       and carries a UNIQUE constraint, so concurrent first contacts between
       the same two users cannot produce two rows.
Who:   conversation_service (find-or-create, listing), message_service.
"""

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from remarket.database import Base
from remarket.identifiers import ID_LENGTH
from remarket.models.common import IdentityMixin, SoftDeleteMixin, TimestampMixin

PAIR_KEY_LENGTH = ID_LENGTH * 2 + 1


class Conversation(IdentityMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "conversations"

    # Stored as supplied on creation; matching uses pair_key only
    participant_a: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id"), nullable=False
    )
    participant_b: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.id"), nullable=False
    )
    pair_key: Mapped[str] = mapped_column(
        String(PAIR_KEY_LENGTH), nullable=False, unique=True
    )

    __table_args__ = (
        Index("idx_conversations_participant_a", "participant_a"),
        Index("idx_conversations_participant_b", "participant_b"),
    )

    def other_participant(self, user_id: str) -> str:
        return self.participant_b if self.participant_a == user_id else self.participant_a

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, pair_key='{self.pair_key}')>"
