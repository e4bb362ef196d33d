"""Message history service."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.campaign import MessageHistory


def record_message(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    recipient: str,
    content: str,
    status: str,
    sender: str | None = None,
    campaign_id: uuid.UUID | None = None,
    provider: str | None = "mspace",
    provider_message_id: str | None = None,
    error_message: str | None = None,
    cost: float = 0.0,
    type_: str = "sms",
) -> MessageHistory:
    """Stage one outbound message row. The caller commits."""
    now = datetime.now(timezone.utc)
    message = MessageHistory(
        user_id=user_id,
        campaign_id=campaign_id,
        type=type_,
        sender=sender,
        recipient=recipient,
        content=content,
        status=status,
        provider=provider,
        provider_message_id=provider_message_id or None,
        error_message=error_message,
        cost=cost,
        sent_at=now if status in ("sent", "delivered") else None,
        failed_at=now if status == "failed" else None,
    )
    db.add(message)
    return message


async def list_messages(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    status: str | None = None,
    type_: str | None = None,
    campaign_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[MessageHistory], int]:
    stmt = select(MessageHistory).where(MessageHistory.user_id == user_id)
    if status:
        stmt = stmt.where(MessageHistory.status == status)
    if type_:
        stmt = stmt.where(MessageHistory.type == type_)
    if campaign_id:
        stmt = stmt.where(MessageHistory.campaign_id == campaign_id)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    stmt = stmt.order_by(MessageHistory.created_at.desc()).offset(offset).limit(limit)
    return list((await db.execute(stmt)).scalars().all()), total
