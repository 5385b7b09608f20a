"""
Remarket Backend - Conversation Resolver
==========================================

What:  Finds the single conversation between two users, creating it on first
       contact, and lists a user's conversations for the inbox view.
How:   Conversations are matched on the canonical pair key
       (`min(a, b):max(a, b)`), which carries a UNIQUE constraint. Creation is
       `INSERT ... ON CONFLICT (pair_key) DO NOTHING` followed by a re-read,
       so whichever concurrent request inserts first wins and every caller
       reads back the same row.
Who:   routes/messages.py (find-or-create, inbox) and message_service (send).
When:  On every message send and every find-or-create call.

Find-or-create flow:
    ┌──────────────┐  found   ┌──────────────┐
    │ read by key  │────────▶│   return     │
    └──────┬───────┘          └──────────────┘
           │ missing
           ▼
    ┌──────────────┐          ┌──────────────┐  found   ┌──────────┐
    │ INSERT ... ON│────────▶│ read by key  │────────▶│  return  │
    │ CONFLICT NOOP│          └──────┬───────┘          └──────────┘
    └──────────────┘                 │ missing (competing insert rolled back)
                                     ▼
                              retry (tenacity, bounded)

Soft-deleted conversations still own their pair key; resolving one clears
the flag instead of inserting a second row.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import desc, false, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from remarket import gateway
from remarket.config import settings
from remarket.database import insert_ignoring_conflicts
from remarket.exceptions import DatabaseError, ValidationError
from remarket.identifiers import canonical_pair_key, new_object_id, parse_identifier
from remarket.models import Conversation, Message, User
from remarket.models.common import as_utc, utcnow
from remarket.schemas.common import PublicUser
from remarket.schemas.message import ConversationSummary, MessageResponse

logger = logging.getLogger(__name__)


class PairKeyRaceError(Exception):
    """The insert was skipped as a conflict but the winning row is not visible."""


class ConversationService:
    """
    Stateless resolver; every method receives the request's session.

    Responsibilities:
        - find_or_create(): idempotent, order-independent resolution
        - find_by_participants(): read-only lookup
        - list_for_user(): inbox with the other participant and last message
    """

    async def find_by_pair_key(
        self,
        db: AsyncSession,
        pair_key: str,
        include_destroyed: bool = False,
    ) -> Optional[Conversation]:
        stmt = select(Conversation).where(Conversation.pair_key == pair_key)
        if not include_destroyed:
            stmt = stmt.where(Conversation.destroyed.is_(false()))
        try:
            result = await db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Conversation lookup failed: %s", e, exc_info=True)
            raise DatabaseError(context={"collection": "conversation"})
        return result.scalar_one_or_none()

    async def find_by_participants(
        self, db: AsyncSession, participant_a: str, participant_b: str
    ) -> Optional[Conversation]:
        """Read-only lookup; argument order does not matter."""
        a = parse_identifier(participant_a, field="participant_a")
        b = parse_identifier(participant_b, field="participant_b")
        return await self.find_by_pair_key(db, canonical_pair_key(a, b))

    async def find_or_create(
        self, db: AsyncSession, participant_a: str, participant_b: str
    ) -> Conversation:
        """
        Returns the conversation between two users, creating it if needed.

        `find_or_create(a, b)` and `find_or_create(b, a)` return the same row,
        and concurrent first calls for the same pair produce exactly one row.
        The caller is responsible for checking both users exist.

        Raises:
            InvalidIdentifierError: a participant id is malformed
            ValidationError:        both participants are the same user
            DatabaseError:          the row could not be created or read back
        """
        a = parse_identifier(participant_a, field="participant_a")
        b = parse_identifier(participant_b, field="participant_b")
        if a == b:
            raise ValidationError(
                "A conversation needs two different participants",
                field="participant_b",
            )
        pair_key = canonical_pair_key(a, b)

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(PairKeyRaceError),
                stop=stop_after_attempt(settings.conversation_create_attempts),
                wait=wait_exponential_jitter(initial=0.01, max=0.2, jitter=0.05),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await self._resolve(db, a, b, pair_key)
        except PairKeyRaceError:
            logger.error("Could not resolve conversation for %s", pair_key)
            raise DatabaseError(
                message="Could not open the conversation. Please try again.",
                context={"pair_key": pair_key},
            )

    async def _resolve(
        self, db: AsyncSession, a: str, b: str, pair_key: str
    ) -> Conversation:
        existing = await self.find_by_pair_key(db, pair_key, include_destroyed=True)
        if existing is not None:
            return await self._revive(db, existing)

        values = gateway.conversations.validate(
            {"participant_a": a, "participant_b": b, "pair_key": pair_key}
        )
        stmt = insert_ignoring_conflicts(db, Conversation.__table__, ["pair_key"]).values(
            id=new_object_id(),
            created_at=utcnow(),
            destroyed=False,
            **values,
        )
        try:
            result = await db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Conversation insert failed: %s", e, exc_info=True)
            raise DatabaseError(context={"collection": "conversation"})

        if result.rowcount == 0:
            logger.info("Conversation %s created concurrently; reading winner", pair_key)

        conversation = await self.find_by_pair_key(db, pair_key, include_destroyed=True)
        if conversation is None:
            raise PairKeyRaceError(pair_key)
        return await self._revive(db, conversation)

    async def _revive(self, db: AsyncSession, conversation: Conversation) -> Conversation:
        if conversation.destroyed:
            conversation.destroyed = False
            conversation.updated_at = utcnow()
            await db.flush()
            logger.info("Restored soft-deleted conversation %s", conversation.id)
        return conversation

    async def list_for_user(self, db: AsyncSession, user_id: str) -> List[ConversationSummary]:
        """
        Lists every live conversation of `user_id`, newest activity first.

        Each entry carries the other participant's public snapshot and the
        most recent message (or None for a conversation with no messages).
        """
        user_id = parse_identifier(user_id, field="user_id")
        conversations = await gateway.conversations.find(
            db,
            or_(Conversation.participant_a == user_id, Conversation.participant_b == user_id),
        )
        if not conversations:
            return []

        conversation_ids = [c.id for c in conversations]
        other_ids = {c.other_participant(user_id) for c in conversations}

        users_result = await db.execute(select(User).where(User.id.in_(other_ids)))
        users: Dict[str, User] = {u.id: u for u in users_result.scalars().all()}

        # Latest message per conversation in one query
        ranked = (
            select(
                Message.id.label("message_id"),
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=(desc(Message.created_at), desc(Message.id)),
                )
                .label("rank"),
            )
            .where(Message.conversation_id.in_(conversation_ids))
            .subquery()
        )
        last_result = await db.execute(
            select(Message).join(ranked, Message.id == ranked.c.message_id).where(ranked.c.rank == 1)
        )
        last_messages: Dict[str, Message] = {
            m.conversation_id: m for m in last_result.scalars().all()
        }

        summaries = []
        for conversation in conversations:
            other = users.get(conversation.other_participant(user_id))
            last = last_messages.get(conversation.id)
            summaries.append(
                ConversationSummary(
                    id=conversation.id,
                    participant_a=conversation.participant_a,
                    participant_b=conversation.participant_b,
                    created_at=conversation.created_at,
                    updated_at=conversation.updated_at,
                    other_participant=PublicUser.model_validate(other) if other else None,
                    last_message=MessageResponse.from_model(last) if last else None,
                )
            )

        def activity(summary: ConversationSummary):
            moment = summary.last_message.created_at if summary.last_message else summary.created_at
            return as_utc(moment)

        summaries.sort(key=activity, reverse=True)
        return summaries


# ── Singleton Instance ────────────────────────────────────────────────────
conversation_service = ConversationService()
