"""In-app notifications for the signed-in user."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.notification import Notification


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    title: str,
    message: str,
    type: str | None = None,
    category: str | None = None,
    priority: str | None = None,
    action_url: str | None = None,
    metadata: dict | None = None,
    expires_at: datetime | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type or "info",
        category=category or "general",
        priority=priority or "normal",
        status="unread",
        action_url=action_url,
        metadata_json=metadata or {},
        expires_at=expires_at,
    )
    db.add(notification)
    await db.commit()
    await db.refresh(notification)
    return notification


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    status: str | None = None,
    type: str | None = None,
    category: str | None = None,
    limit: int | None = None,
    offset: int = 0,
    include_expired: bool = False,
    now: datetime | None = None,
) -> list[Notification]:
    """Newest first. Expired notifications are hidden unless asked for."""
    stmt = select(Notification).where(Notification.user_id == user_id)
    if status:
        stmt = stmt.where(Notification.status == status)
    if type:
        stmt = stmt.where(Notification.type == type)
    if category:
        stmt = stmt.where(Notification.category == category)
    if not include_expired:
        current = now or _utcnow()
        stmt = stmt.where(or_(Notification.expires_at.is_(None), Notification.expires_at > current))
    page = limit or settings.notification_page_size
    stmt = stmt.order_by(Notification.created_at.desc()).offset(max(0, offset)).limit(page)
    return list((await db.execute(stmt)).scalars().all())


async def get_notification(
    db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
) -> Notification | None:
    stmt = select(Notification).where(
        Notification.id == notification_id, Notification.user_id == user_id
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def mark_read(
    db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
) -> Notification | None:
    notification = await get_notification(db, user_id, notification_id)
    if not notification:
        return None
    if notification.status != "read":
        notification.status = "read"
        notification.read_at = _utcnow()
        await db.commit()
        await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.status == "unread")
        .values(status="read", read_at=_utcnow())
    )
    await db.commit()
    return result.rowcount or 0


async def delete_notification(
    db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
) -> bool:
    notification = await get_notification(db, user_id, notification_id)
    if not notification:
        return False
    await db.delete(notification)
    await db.commit()
    return True
