"""
Remarket Backend - Messaging Schemas
======================================

What:  Request and response models for conversations and messages.
Who:   routes/messages.py, conversation_service, message_service and the
       realtime notifier (which emits `MessageResponse` payloads).

Content Rule:
    A message carries text, an image URL, a location, or any combination.
    The request model only shapes the fields; the message store enforces
    "at least one" so the rule holds for every caller.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from remarket.identifiers import ObjectIdStr
from remarket.schemas.common import PublicUser


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class GeoLocation(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class MessageContent(BaseModel):
    """Content of a message independent of who sends it where."""
    text: Optional[str] = Field(default=None, max_length=2000)
    image_url: Optional[str] = Field(default=None, max_length=2048)
    location: Optional[GeoLocation] = None


class SendMessageRequest(MessageContent):
    """POST /api/v1/messages"""
    receiver_id: ObjectIdStr


class FindOrCreateConversationRequest(BaseModel):
    """POST /api/v1/messages/find-or-create"""
    receiver_id: ObjectIdStr


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    text: Optional[str] = None
    image_url: Optional[str] = None
    location: Optional[GeoLocation] = None
    is_read: bool
    created_at: datetime

    @classmethod
    def from_model(cls, message) -> "MessageResponse":
        location = None
        if message.latitude is not None and message.longitude is not None:
            location = GeoLocation(latitude=message.latitude, longitude=message.longitude)
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            text=message.text,
            image_url=message.image_url,
            location=location,
            is_read=message.is_read,
            created_at=message.created_at,
        )


class ConversationResponse(BaseModel):
    """Returned by find-or-create."""
    id: str
    participant_a: str
    participant_b: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    other_participant: Optional[PublicUser] = None

    model_config = {"from_attributes": True}


class ConversationSummary(BaseModel):
    """One entry of GET /api/v1/messages/conversations."""
    id: str
    participant_a: str
    participant_b: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    other_participant: Optional[PublicUser] = None
    last_message: Optional[MessageResponse] = None
