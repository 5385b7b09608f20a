"""
Remarket Backend - Persistence Record Schemas
===============================================

What:  One pydantic model per stored entity describing what a row may
       contain. The gateway validates every create and every merged update
       against these before anything reaches the database.
How:   `extra="forbid"` so a patch naming an unknown field fails loudly.
       Cross-field rules (rejection reason, geolocation pairs, message
       content) live in model validators.
Who:   remarket.gateway only. HTTP request bodies have their own schemas
       in the sibling modules; the two change independently.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from remarket.identifiers import ObjectIdStr, canonical_pair_key
from remarket.models.listing import STATUS_REJECTED

ListingStatus = Literal["PENDING", "PUBLISHED", "EXPIRED", "DELETED", "REJECTED"]
ListingCondition = Literal["new", "like_new", "used"]
Role = Literal["client", "admin"]
Gender = Literal["MALE", "FEMALE", "OTHER"]


class RecordSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class UserRecord(RecordSchema):
    email: str = Field(min_length=3, max_length=254)
    username: str = Field(min_length=1, max_length=50)
    display_name: str = Field(min_length=1, max_length=100)
    password_hash: str = Field(min_length=1)
    role: Role = "client"
    avatar_url: Optional[str] = Field(default=None, max_length=2048)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = None
    gender: Optional[Gender] = None
    is_active: bool = True
    verify_token: Optional[str] = None
    refresh_token: Optional[str] = None


class ListingRecord(RecordSchema):
    seller_id: ObjectIdStr
    category_id: ObjectIdStr
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=5000)
    price: float = Field(ge=0)
    condition: ListingCondition = "used"
    images: List[str] = Field(default_factory=list)
    location: Optional[str] = Field(default=None, max_length=255)
    status: ListingStatus = "PENDING"
    rejection_reason: Optional[str] = Field(default=None, max_length=1000)
    views: int = Field(default=0, ge=0)
    is_featured: bool = False
    expires_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_rejection_reason(self) -> "ListingRecord":
        # A reason is required while REJECTED and dropped on any other status
        if self.status == STATUS_REJECTED:
            if not self.rejection_reason:
                raise ValueError("rejection_reason is required when status is REJECTED")
        else:
            self.rejection_reason = None
        return self


class CategoryRecord(RecordSchema):
    name: str = Field(min_length=3, max_length=50)
    slug: str = Field(min_length=1, max_length=64)
    code: Optional[str] = Field(default=None, min_length=1, max_length=256)
    parent_id: Optional[ObjectIdStr] = None
    image_url: Optional[str] = Field(default=None, max_length=2048)


class ConversationRecord(RecordSchema):
    participant_a: ObjectIdStr
    participant_b: ObjectIdStr
    pair_key: str

    @model_validator(mode="after")
    def check_pair(self) -> "ConversationRecord":
        if self.participant_a == self.participant_b:
            raise ValueError("a conversation needs two distinct participants")
        if self.pair_key != canonical_pair_key(self.participant_a, self.participant_b):
            raise ValueError("pair_key does not match the participants")
        return self


class MessageRecord(RecordSchema):
    conversation_id: ObjectIdStr
    sender_id: ObjectIdStr
    receiver_id: ObjectIdStr
    text: Optional[str] = Field(default=None, max_length=2000)
    image_url: Optional[str] = Field(default=None, max_length=2048)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    is_read: bool = False

    @model_validator(mode="after")
    def check_content(self) -> "MessageRecord":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        if not self.text:
            self.text = None
        if not self.image_url:
            self.image_url = None
        if self.text is None and self.image_url is None and self.latitude is None:
            raise ValueError("a message needs text, an image or a location")
        return self


class ReviewRecord(RecordSchema):
    listing_id: ObjectIdStr
    user_id: ObjectIdStr
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)
