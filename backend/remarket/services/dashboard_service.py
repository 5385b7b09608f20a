"""
Remarket Backend - Dashboard Service
======================================

What:  Aggregate numbers for the admin dashboard.
How:   Counts run in SQL. The time series (users per month over the last
       six months, listings per day over the last seven days) fetch only the
       timestamps inside the window and bucket them in Python, which keeps
       the queries identical on PostgreSQL and SQLite.
Who:   GET /api/v1/dashboard/stats (admin only).
"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from remarket import gateway
from remarket.models import Listing, User
from remarket.models.common import as_utc, utcnow
from remarket.models.listing import STATUS_PUBLISHED
from remarket.schemas.dashboard import DailyListingActivity, DashboardStats, MonthlyCount
from remarket.schemas.user import UserResponse
from remarket.services.listing_query import with_sellers

logger = logging.getLogger(__name__)

GROWTH_MONTHS = 6
ACTIVITY_DAYS = 7
RECENT_LIMIT = 5


def _month_key(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def last_months(today: date, count: int) -> List[str]:
    """The `count` calendar months ending with today's month, oldest first."""
    year, month = today.year, today.month
    keys = []
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


class DashboardService:
    async def get_stats(self, db: AsyncSession, now: Optional[datetime] = None) -> DashboardStats:
        now = now or utcnow()
        today = now.date()

        total_users = await gateway.users.count(db)
        active_listings = await gateway.listings.count(db, Listing.status == STATUS_PUBLISHED)
        new_users_this_week = await gateway.users.count(
            db, User.created_at >= now - timedelta(days=7)
        )

        # ── Users per month ──
        months = last_months(today, GROWTH_MONTHS)
        growth_start = datetime(int(months[0][:4]), int(months[0][5:]), 1, tzinfo=now.tzinfo)
        result = await db.execute(
            select(User.created_at).where(
                User.destroyed.is_(false()), User.created_at >= growth_start
            )
        )
        per_month = Counter(_month_key(as_utc(created)) for created in result.scalars())
        user_growth = [MonthlyCount(month=key, count=per_month.get(key, 0)) for key in months]

        # ── Listings per day ──
        first_day = today - timedelta(days=ACTIVITY_DAYS - 1)
        activity_start = datetime.combine(first_day, datetime.min.time(), tzinfo=now.tzinfo)
        result = await db.execute(
            select(Listing.created_at, Listing.status).where(
                Listing.destroyed.is_(false()), Listing.created_at >= activity_start
            )
        )
        active, inactive = Counter(), Counter()
        for created, status in result.all():
            day = as_utc(created).date()
            if status == STATUS_PUBLISHED:
                active[day] += 1
            else:
                inactive[day] += 1
        listing_activity = [
            DailyListingActivity(day=day, active=active.get(day, 0), inactive=inactive.get(day, 0))
            for day in (first_day + timedelta(days=offset) for offset in range(ACTIVITY_DAYS))
        ]

        # ── Most recent ──
        recent_users = await gateway.users.find(
            db, order_by=(User.created_at.desc(), User.id.desc()), limit=RECENT_LIMIT
        )
        recent_listings = await gateway.listings.find(
            db, order_by=(Listing.created_at.desc(), Listing.id.desc()), limit=RECENT_LIMIT
        )

        logger.debug("Dashboard stats: users=%d active_listings=%d", total_users, active_listings)
        return DashboardStats(
            total_users=total_users,
            active_listings=active_listings,
            new_users_this_week=new_users_this_week,
            user_growth=user_growth,
            listing_activity=listing_activity,
            recent_users=[UserResponse.model_validate(u) for u in recent_users],
            recent_listings=await with_sellers(db, recent_listings),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
dashboard_service = DashboardService()
