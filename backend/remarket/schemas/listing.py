"""
Remarket Backend - Listing Schemas
====================================

What:  Request bodies for creating, editing and moderating listings, the
       search filter model and the listing responses.
Who:   routes/listings.py, listing_service, listing_query, user favorites.

Status is never accepted from sellers: new listings start PENDING and only
the admin moderation endpoint (`ListingStatusUpdate`) moves them.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from remarket.identifiers import ObjectIdStr
from remarket.schemas.common import Pagination, PublicUser

ListingStatus = Literal["PENDING", "PUBLISHED", "EXPIRED", "DELETED", "REJECTED"]
ListingCondition = Literal["new", "like_new", "used"]
SortField = Literal["created_at", "price", "views", "title"]
SortOrder = Literal["asc", "desc"]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ListingCreate(BaseModel):
    """POST /api/v1/listings"""
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=5000)
    price: float = Field(ge=0)
    category_id: ObjectIdStr
    condition: ListingCondition = "used"
    images: List[str] = Field(default_factory=list, max_length=20)
    location: Optional[str] = Field(default=None, max_length=255)

    model_config = ConfigDict(str_strip_whitespace=True)


class ListingUpdate(BaseModel):
    """
    PUT /api/v1/listings/{id}

    Every field optional; only fields present in the body are changed.
    Unknown keys (seller id, timestamps, status) are ignored.
    """
    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=5000)
    price: Optional[float] = Field(default=None, ge=0)
    category_id: Optional[ObjectIdStr] = None
    condition: Optional[ListingCondition] = None
    images: Optional[List[str]] = Field(default=None, max_length=20)
    location: Optional[str] = Field(default=None, max_length=255)

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class ListingStatusUpdate(BaseModel):
    """PATCH /api/v1/listings/{id}/status (admin)"""
    status: ListingStatus
    rejection_reason: Optional[str] = Field(default=None, max_length=1000)
    is_featured: Optional[bool] = None

    @model_validator(mode="after")
    def require_reason_for_rejection(self) -> "ListingStatusUpdate":
        if self.status == "REJECTED" and not (self.rejection_reason or "").strip():
            raise ValueError("rejection_reason is required when rejecting a listing")
        return self


class ListingFilters(BaseModel):
    """
    Validated search parameters for GET /api/v1/listings/search.

    Parameters:
        search:     case-insensitive substring of title OR description
        status:     one or more statuses; repeated (?status=A&status=B) or
                    comma separated (?status=A,B). Honoured for admins only.
        min_price / max_price: inclusive bounds, each optional
        location:   case-insensitive substring
        sort_by / sort_order: created_at|price|views|title, asc|desc
        page / limit: 1-based page, page size 1..100
    """
    search: Optional[str] = Field(default=None, max_length=200)
    category_id: Optional[ObjectIdStr] = None
    status: List[ListingStatus] = Field(default_factory=list)
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = Field(default=None, max_length=255)
    sort_by: SortField = "created_at"
    sort_order: SortOrder = "desc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    @field_validator("status", mode="before")
    @classmethod
    def split_statuses(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        statuses = []
        for item in value:
            statuses.extend(part.strip().upper() for part in str(item).split(",") if part.strip())
        return statuses

    @field_validator("search", "location", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def check_price_range(self) -> "ListingFilters":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price must not exceed max_price")
        return self


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ListingResponse(BaseModel):
    id: str
    seller_id: str
    category_id: str
    title: str
    description: str
    price: float
    condition: str
    images: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    status: str
    rejection_reason: Optional[str] = None
    views: int
    is_featured: bool
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    seller: Optional[PublicUser] = Field(
        default=None, description="Public snapshot of the seller"
    )

    model_config = {"from_attributes": True}


class ListingPage(BaseModel):
    data: List[ListingResponse]
    pagination: Pagination
