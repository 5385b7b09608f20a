"""
Remarket Backend - Dashboard Route
====================================

GET /api/v1/dashboard/stats (admin only).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from remarket.database import get_db_session
from remarket.routes.deps import require_admin
from remarket.schemas.dashboard import DashboardStats
from remarket.security import TokenIdentity
from remarket.services.dashboard_service import dashboard_service

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStats, summary="(admin) Dashboard statistics")
async def get_stats(
    _: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> DashboardStats:
    return await dashboard_service.get_stats(db)
