"""
Remarket Backend - Dashboard Schemas
======================================

What:  Admin dashboard statistics returned by GET /api/v1/dashboard/stats.
"""

from datetime import date
from typing import List

from pydantic import BaseModel, Field

from remarket.schemas.listing import ListingResponse
from remarket.schemas.user import UserResponse


class MonthlyCount(BaseModel):
    month: str = Field(description="Calendar month as YYYY-MM")
    count: int


class DailyListingActivity(BaseModel):
    day: date
    active: int = Field(description="Listings created that day that are PUBLISHED now")
    inactive: int = Field(description="Listings created that day in any other status")


class DashboardStats(BaseModel):
    total_users: int
    active_listings: int
    new_users_this_week: int
    user_growth: List[MonthlyCount]
    listing_activity: List[DailyListingActivity]
    recent_users: List[UserResponse]
    recent_listings: List[ListingResponse]
