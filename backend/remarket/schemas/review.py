"""
Remarket Backend - Review Schemas
===================================
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from remarket.identifiers import ObjectIdStr
from remarket.schemas.common import PublicUser


class ReviewCreate(BaseModel):
    """POST /api/v1/reviews"""
    listing_id: ObjectIdStr
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(str_strip_whitespace=True)


class ReviewUpdate(BaseModel):
    """PUT /api/v1/reviews/{review_id}; listing and author cannot change."""
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class ReviewResponse(BaseModel):
    id: str
    listing_id: str
    user_id: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    author: Optional[PublicUser] = None

    model_config = {"from_attributes": True}
