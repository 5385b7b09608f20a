"""
Remarket Backend - Dashboard Service Tests
============================================

What we test:
    ✅ last_months(): year boundaries, oldest first
    ✅ Totals exclude soft-deleted rows; active listings are PUBLISHED ones
    ✅ Monthly user growth and daily listing activity buckets, empty buckets as 0
    ✅ Recent users/listings capped at five, newest first
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from remarket import gateway
from remarket.services.dashboard_service import (
    ACTIVITY_DAYS,
    GROWTH_MONTHS,
    RECENT_LIMIT,
    DashboardService,
    last_months,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def test_last_months_crosses_year():
    assert last_months(date(2026, 2, 10), 4) == ["2025-11", "2025-12", "2026-01", "2026-02"]


class TestDashboardService:

    def setup_method(self):
        self.service = DashboardService()

    @pytest.mark.asyncio
    async def test_empty_database(self, db_session):
        stats = await self.service.get_stats(db_session, now=NOW)

        assert stats.total_users == 0
        assert len(stats.user_growth) == GROWTH_MONTHS
        assert stats.user_growth[-1].month == "2026-03"
        assert [d.day for d in stats.listing_activity][-1] == date(2026, 3, 15)
        assert len(stats.listing_activity) == ACTIVITY_DAYS
        assert all(d.active == d.inactive == 0 for d in stats.listing_activity)

    @pytest.mark.asyncio
    async def test_buckets(self, db_session, make_user, make_listing):
        january = await make_user()
        march = await make_user()
        old = await make_user()
        removed = await make_user()
        january.created_at = datetime(2026, 1, 20, tzinfo=timezone.utc)
        march.created_at = datetime(2026, 3, 14, tzinfo=timezone.utc)
        old.created_at = datetime(2025, 6, 1, tzinfo=timezone.utc)
        removed.created_at = datetime(2026, 3, 10, tzinfo=timezone.utc)
        await gateway.users.soft_delete(db_session, removed.id)

        today_published = await make_listing(march)
        today_pending = await make_listing(march, status="PENDING")
        two_days_ago = await make_listing(january)
        last_month = await make_listing(january)
        today_published.created_at = NOW - timedelta(hours=1)
        today_pending.created_at = NOW - timedelta(hours=2)
        two_days_ago.created_at = NOW - timedelta(days=2)
        last_month.created_at = NOW - timedelta(days=30)
        await db_session.flush()

        stats = await self.service.get_stats(db_session, now=NOW)

        assert stats.total_users == 3
        assert stats.active_listings == 3
        assert stats.new_users_this_week == 1

        growth = {m.month: m.count for m in stats.user_growth}
        assert growth["2026-01"] == 1
        assert growth["2026-03"] == 1
        assert "2025-06" not in growth

        activity = {d.day: (d.active, d.inactive) for d in stats.listing_activity}
        assert activity[date(2026, 3, 15)] == (1, 1)
        assert activity[date(2026, 3, 13)] == (1, 0)
        assert sum(a + i for a, i in activity.values()) == 3

    @pytest.mark.asyncio
    async def test_recent_capped(self, db_session, make_user):
        users = [await make_user() for _ in range(RECENT_LIMIT + 2)]
        for offset, user in enumerate(users):
            user.created_at = NOW - timedelta(minutes=offset)
        await db_session.flush()

        stats = await self.service.get_stats(db_session, now=NOW)

        assert [u.id for u in stats.recent_users] == [u.id for u in users[:RECENT_LIMIT]]
