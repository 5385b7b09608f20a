"""
Remarket Backend - Message Store and Send Workflow
====================================================

What:  Append-only message persistence plus the send/history workflows the
       messaging routes use.
How:   `append` validates content through the message record schema and
       inserts through the gateway. `send_message` checks the receiver,
       resolves the conversation, appends and COMMITS, so the realtime push
       that the route schedules afterwards never announces a message that
       could still be rolled back.
Who:   routes/messages.py.

Send flow (POST /api/v1/messages):
    ┌──────────┐   ┌────────────┐   ┌──────────┐   ┌────────┐   ┌────────────┐
    │ receiver │──▶│ find-or-   │──▶│ append   │──▶│ commit │──▶│ background │
    │ exists?  │   │ create conv│   │ message  │   │        │   │ newMessage │
    └──────────┘   └────────────┘   └──────────┘   └────────┘   └────────────┘
"""

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from remarket import gateway
from remarket.exceptions import NotFoundError, ValidationError
from remarket.identifiers import parse_identifier
from remarket.models import Message
from remarket.schemas.message import MessageContent
from remarket.services.conversation_service import conversation_service

logger = logging.getLogger(__name__)


class MessageService:
    """
    Responsibilities:
        - append(): store one message in a conversation
        - list_by_conversation(): full history, oldest first
        - send_message(): receiver check + resolve + append + commit
        - get_messages_with(): history between the caller and another user
    """

    async def append(
        self,
        db: AsyncSession,
        conversation_id: str,
        sender_id: str,
        receiver_id: str,
        content: MessageContent,
    ) -> Message:
        """
        Appends a message. `is_read` starts False and `created_at` is assigned
        by the server.

        Participants are not re-checked against the conversation here; the
        caller resolved the conversation from the same two ids.

        Raises:
            ValidationError: no text, image or location (or a half location)
        """
        location = content.location
        return await gateway.messages.create_new(
            db,
            {
                "conversation_id": conversation_id,
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "text": content.text,
                "image_url": content.image_url,
                "latitude": location.latitude if location else None,
                "longitude": location.longitude if location else None,
                "is_read": False,
            },
        )

    async def list_by_conversation(self, db: AsyncSession, conversation_id: str) -> List[Message]:
        """
        All messages of a conversation, ascending by creation time with the
        id as tie-breaker.

        Unbounded: long conversations return their whole history.
        """
        conversation_id = parse_identifier(conversation_id, field="conversation_id")
        return await gateway.messages.find(
            db,
            Message.conversation_id == conversation_id,
            order_by=(Message.created_at.asc(), Message.id.asc()),
        )

    async def send_message(
        self,
        db: AsyncSession,
        sender_id: str,
        receiver_id: str,
        content: MessageContent,
    ) -> Message:
        """
        Raises:
            ValidationError: sending to yourself, or empty content
            NotFoundError:   receiver does not exist
        """
        if sender_id == receiver_id:
            raise ValidationError("You cannot send a message to yourself", field="receiver_id")

        receiver = await gateway.users.find_one_by_id(db, receiver_id)
        if receiver is None:
            raise NotFoundError(resource="user", resource_id=receiver_id)

        conversation = await conversation_service.find_or_create(db, sender_id, receiver_id)
        message = await self.append(db, conversation.id, sender_id, receiver.id, content)

        await db.commit()
        logger.info(
            "Message %s stored in conversation %s (%s → %s)",
            message.id,
            conversation.id,
            sender_id,
            receiver.id,
        )
        return message

    async def get_messages_with(
        self, db: AsyncSession, user_id: str, other_user_id: str
    ) -> List[Message]:
        """History with another user; empty when they never talked."""
        other = await gateway.users.find_one_by_id(db, other_user_id)
        if other is None:
            raise NotFoundError(resource="user", resource_id=other_user_id)

        conversation = await conversation_service.find_by_participants(db, user_id, other.id)
        if conversation is None:
            return []
        return await self.list_by_conversation(db, conversation.id)


# ── Singleton Instance ────────────────────────────────────────────────────
message_service = MessageService()
