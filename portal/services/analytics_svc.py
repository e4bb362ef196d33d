"""Messaging, user and service analytics, served through the query cache."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache.context import PerformanceContext
from ..config import settings
from ..models.analytics import AnalyticsEvent
from ..models.campaign import Campaign, MessageHistory
from ..models.service import ServiceCatalog, ServiceSubscription
from ..models.user import UserProfile

logger = logging.getLogger(__name__)

ACTIONS = ("log_event", "get_user_analytics", "get_service_analytics", "get_messaging_analytics")


class AnalyticsError(Exception):
    pass


async def _grouped(db: AsyncSession, column, *where) -> dict[str, int]:
    stmt = select(column, func.count()).where(*where).group_by(column)
    return {str(key or "unknown"): int(count) for key, count in (await db.execute(stmt)).all()}


async def messaging_stats(
    db: AsyncSession, user_id: uuid.UUID, *, days: int = 30, now: datetime | None = None
) -> dict:
    """Message and campaign totals for one user, plus a daily send series."""
    current = now or datetime.now(timezone.utc)
    owned = MessageHistory.user_id == user_id

    by_status = await _grouped(db, MessageHistory.status, owned)
    by_type = await _grouped(db, MessageHistory.type, owned)
    total = sum(by_status.values())
    cost = (await db.execute(
        select(func.coalesce(func.sum(MessageHistory.cost), 0.0)).where(owned)
    )).scalar() or 0.0

    since = current - timedelta(days=max(1, days))
    day = func.date(MessageHistory.created_at)
    daily_rows = (await db.execute(
        select(day, func.count()).where(owned, MessageHistory.created_at >= since)
        .group_by(day).order_by(day)
    )).all()

    campaigns = await _grouped(db, Campaign.status, Campaign.user_id == user_id)
    delivered = by_status.get("delivered", 0) + by_status.get("sent", 0)

    return {
        "total_messages": total,
        "by_status": by_status,
        "by_type": by_type,
        "delivery_rate": round(delivered / total * 100, 2) if total else 0.0,
        "total_cost": float(cost),
        "daily": [{"date": str(d), "count": int(c)} for d, c in daily_rows],
        "campaigns": {"total": sum(campaigns.values()), "by_status": campaigns},
    }


async def user_analytics(db: AsyncSession) -> dict:
    by_role = await _grouped(db, UserProfile.role)
    by_type = await _grouped(db, UserProfile.user_type)
    return {
        "total_users": sum(by_role.values()),
        "users_by_role": by_role,
        "users_by_type": by_type,
    }


async def service_analytics(db: AsyncSession) -> dict:
    by_status = await _grouped(db, ServiceSubscription.status)
    by_service_rows = (await db.execute(
        select(ServiceCatalog.service_name, func.count(ServiceSubscription.id))
        .join(ServiceCatalog, ServiceCatalog.id == ServiceSubscription.service_id)
        .group_by(ServiceCatalog.service_name)
    )).all()
    return {
        "total_subscriptions": sum(by_status.values()),
        "active_subscriptions": by_status.get("active", 0),
        "subscriptions_by_service": {name: int(count) for name, count in by_service_rows},
        "subscriptions_by_status": by_status,
    }


async def log_event(
    db: AsyncSession,
    *,
    event_type: str,
    user_id: uuid.UUID | None = None,
    service_type: str | None = None,
    metadata: dict | None = None,
    revenue: float = 0.0,
) -> AnalyticsEvent:
    if not event_type:
        raise AnalyticsError("event_type is required")
    event = AnalyticsEvent(
        user_id=user_id,
        event_type=event_type,
        service_type=service_type,
        metadata_json=metadata or {},
        revenue=revenue or 0.0,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


async def cached_messaging_stats(
    db: AsyncSession, perf: PerformanceContext, user_id: uuid.UUID, *, days: int = 30
) -> dict:
    return await perf.cache.fetch(
        ("analytics", "messaging", str(user_id), days),
        lambda: messaging_stats(db, user_id, days=days),
        stale_after=settings.cache_stale_seconds,
    )


async def cached_admin_overview(db: AsyncSession, perf: PerformanceContext) -> dict:
    async def _load() -> dict:
        return {"users": await user_analytics(db), "services": await service_analytics(db)}

    return await perf.cache.fetch(
        ("analytics", "admin-overview"), _load, stale_after=settings.cache_stale_seconds
    )


async def process_action(
    db: AsyncSession, action: str, data: dict | None, *, user_id: uuid.UUID
) -> dict:
    """Dispatch an analytics-processor action."""
    payload = data or {}
    if action == "log_event":
        event = await log_event(
            db,
            event_type=payload.get("event_type", ""),
            user_id=user_id,
            service_type=payload.get("service_type"),
            metadata=payload.get("metadata"),
            revenue=float(payload.get("revenue") or 0.0),
        )
        return {"event": {"id": str(event.id), "event_type": event.event_type}}
    if action == "get_user_analytics":
        return {"analytics": await user_analytics(db)}
    if action == "get_service_analytics":
        return {"analytics": await service_analytics(db)}
    if action == "get_messaging_analytics":
        return {"analytics": await messaging_stats(db, user_id, days=int(payload.get("days", 30)))}
    raise AnalyticsError("Invalid action")
