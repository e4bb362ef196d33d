"""Security audit log."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.admin import AuditLog

SECURITY_ACTIONS = (
    "ADMIN_SESSION_CREATE",
    "ADMIN_SESSION_TERMINATE",
    "ADMIN_SESSION_TERMINATE_ALL",
    "ADMIN_SECURITY_UPDATE",
    "ADMIN_PASSWORD_CHANGE",
    "ADMIN_2FA_ENABLE",
    "ADMIN_2FA_DISABLE",
)


def record(
    db: AsyncSession,
    user_id: uuid.UUID | None,
    action: str,
    resource: str | None = None,
    **data,
) -> AuditLog:
    """Stage an audit row; the caller commits."""
    entry = AuditLog(user_id=user_id, action=action, resource=resource, data=data or None)
    db.add(entry)
    return entry


async def list_entries(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    actions: tuple[str, ...] | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    stmt = select(AuditLog).where(AuditLog.user_id == user_id)
    if actions:
        stmt = stmt.where(AuditLog.action.in_(actions))
    stmt = stmt.order_by(AuditLog.created_at.desc()).limit(limit)
    return list((await db.execute(stmt)).scalars().all())


def to_dict(entry: AuditLog) -> dict:
    return {
        "id": str(entry.id),
        "action": entry.action,
        "resource": entry.resource,
        "data": entry.data or {},
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
