"""
Remarket Backend - Category Schemas
=====================================

Request and response models for /api/v1/categories. Empty strings for the
optional fields are treated as "not set", so an empty `code` never collides
with another category's empty code.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from remarket.identifiers import ObjectIdStr
from remarket.schemas.common import Pagination


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CategoryCreate(BaseModel):
    name: str = Field(min_length=3, max_length=50)
    code: Optional[str] = Field(default=None, max_length=256)
    parent_id: Optional[ObjectIdStr] = None
    image_url: Optional[str] = Field(default=None, max_length=2048)

    model_config = ConfigDict(str_strip_whitespace=True)

    blank_optional_fields = field_validator("code", "parent_id", "image_url", mode="before")(
        _blank_to_none
    )


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=3, max_length=50)
    code: Optional[str] = Field(default=None, max_length=256)
    parent_id: Optional[ObjectIdStr] = None
    image_url: Optional[str] = Field(default=None, max_length=2048)

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    blank_optional_fields = field_validator("code", "parent_id", "image_url", mode="before")(
        _blank_to_none
    )


class CategoryResponse(BaseModel):
    id: str
    name: str
    slug: str
    code: Optional[str] = None
    parent_id: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CategoryPage(BaseModel):
    data: List[CategoryResponse]
    pagination: Pagination
