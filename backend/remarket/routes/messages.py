"""
Remarket Backend - Message Routes
===================================

What:  Conversations and direct messages under /api/v1/messages.
How:   Sending stores the message and commits inside the service, then the
       route schedules the realtime push as a background task, so the push
       only ever announces a committed message and never delays or fails
       the HTTP response.

Endpoints:
    GET  /messages/conversations      inbox, newest activity first
    POST /messages/find-or-create     conversation with another user
    GET  /messages/{other_user_id}    history with another user, oldest first
    POST /messages                    send a message
"""

import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from remarket import gateway
from remarket.database import get_db_session
from remarket.exceptions import NotFoundError, ValidationError
from remarket.realtime import RealtimeNotifier
from remarket.routes.deps import get_current_identity, get_notifier
from remarket.schemas.common import ErrorResponse, PublicUser
from remarket.schemas.message import (
    ConversationResponse,
    ConversationSummary,
    FindOrCreateConversationRequest,
    MessageResponse,
    SendMessageRequest,
)
from remarket.security import TokenIdentity
from remarket.services.conversation_service import conversation_service
from remarket.services.message_service import message_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/messages", tags=["Messages"])


@router.get(
    "/conversations",
    response_model=List[ConversationSummary],
    summary="My conversations",
)
async def list_conversations(
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> List[ConversationSummary]:
    return await conversation_service.list_for_user(db, identity.user_id)


@router.post(
    "/find-or-create",
    response_model=ConversationResponse,
    responses={404: {"description": "Receiver not found", "model": ErrorResponse}},
    summary="Find or create a conversation",
)
async def find_or_create_conversation(
    payload: FindOrCreateConversationRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ConversationResponse:
    if payload.receiver_id == identity.user_id:
        raise ValidationError("You cannot start a conversation with yourself", field="receiver_id")
    receiver = await gateway.users.find_one_by_id(db, payload.receiver_id)
    if receiver is None:
        raise NotFoundError(resource="user", resource_id=payload.receiver_id)

    conversation = await conversation_service.find_or_create(db, identity.user_id, receiver.id)
    response = ConversationResponse.model_validate(conversation)
    response.other_participant = PublicUser.model_validate(receiver)
    return response


@router.get(
    "/{other_user_id}",
    response_model=List[MessageResponse],
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Messages with another user",
)
async def get_messages(
    other_user_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> List[MessageResponse]:
    messages = await message_service.get_messages_with(db, identity.user_id, other_user_id)
    return [MessageResponse.from_model(m) for m in messages]


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Receiver not found", "model": ErrorResponse},
        422: {"description": "Empty message or invalid receiver", "model": ErrorResponse},
    },
    summary="Send a message",
)
async def send_message(
    payload: SendMessageRequest,
    background_tasks: BackgroundTasks,
    identity: TokenIdentity = Depends(get_current_identity),
    notifier: RealtimeNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    message = await message_service.send_message(
        db, identity.user_id, payload.receiver_id, payload
    )
    response = MessageResponse.from_model(message)
    background_tasks.add_task(notifier.notify_new_message, response)
    return response
