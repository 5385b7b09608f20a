"""
Remarket Backend - Shared API Schemas
=======================================

What:  Response building blocks reused across resources: the public user
       snapshot embedded in listings/messages/reviews, the pagination block
       and a plain status message.
"""

import math
from typing import Optional

from pydantic import BaseModel, Field


class PublicUser(BaseModel):
    """
    What:  The subset of a user that other users may see.
    Who:   Embedded as `seller` in listings, `other_participant` in
           conversations and `author` in reviews.
    """
    id: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    current_page: int = Field(description="1-based page number that was returned")
    total_pages: int = Field(description="Number of pages for the current filters")
    total_items: int = Field(description="Number of matching items across all pages")

    @classmethod
    def build(cls, page: int, limit: int, total_items: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=math.ceil(total_items / limit) if limit else 0,
            total_items=total_items,
        )


class StatusMessage(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """
    What:  Body of every error response.

    Example:
        {
            "error": "not_found",
            "message": "listing with ID '65f0c1a2e4b0a1b2c3d4e5f6' was not found",
            "details": {"resource": "listing", "resource_id": "65f0c1a2e4b0a1b2c3d4e5f6"},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    realtime_connections: int = Field(description="Socket.IO sessions on this process")
    uptime_seconds: float = Field(description="Seconds since service started")
