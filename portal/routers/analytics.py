"""Analytics routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache.context import PerformanceContext, get_performance
from ..database import get_db
from ..models.user import UserProfile
from ..security.auth import get_current_user, require_admin
from ..services import analytics_svc

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/messaging")
async def messaging(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    perf: PerformanceContext = Depends(get_performance),
    days: int = Query(30, ge=1, le=365),
):
    return await analytics_svc.cached_messaging_stats(db, perf, user.id, days=days)


@router.get("/admin")
async def admin_overview(
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    perf: PerformanceContext = Depends(get_performance),
):
    return await analytics_svc.cached_admin_overview(db, perf)
