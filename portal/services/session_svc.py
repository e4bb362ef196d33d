"""Admin sessions and the admin security log."""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.admin import AdminSession
from . import audit_svc, profile_svc

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_session_token() -> str:
    return secrets.token_hex(32)


def mask_token(token: str) -> str:
    return f"{token[:8]}..."


def to_public(session: AdminSession) -> dict:
    return {
        "id": str(session.id),
        "session_token": mask_token(session.session_token),
        "ip_address": session.ip_address,
        "user_agent": session.user_agent,
        "location": session.location,
        "is_active": session.is_active,
        "last_activity": session.last_activity.isoformat() if session.last_activity else None,
        "created_at": session.created_at.isoformat() if session.created_at else None,
        "expires_at": session.expires_at.isoformat() if session.expires_at else None,
    }


async def list_sessions(
    db: AsyncSession, user_id: uuid.UUID, *, now: datetime | None = None
) -> list[AdminSession]:
    """Active, unexpired sessions, most recently used first."""
    current = now or _utcnow()
    stmt = (
        select(AdminSession)
        .where(AdminSession.user_id == user_id, AdminSession.is_active.is_(True))
        .order_by(AdminSession.last_activity.desc())
    )
    sessions = (await db.execute(stmt)).scalars().all()
    return [s for s in sessions if _aware(s.expires_at) > current]


async def create_session(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    location: dict | None = None,
    now: datetime | None = None,
) -> tuple[AdminSession, str]:
    """Open a session; returns it with the full token, which is shown only once."""
    current = now or _utcnow()
    security = await profile_svc.get_security_settings(db, user_id)
    expires_at = current + timedelta(minutes=security.session_timeout or 30)

    token = generate_session_token()
    session = AdminSession(
        user_id=user_id,
        session_token=token,
        ip_address=ip_address or "unknown",
        user_agent=user_agent or "unknown",
        location=location,
        is_active=True,
        last_activity=current,
        expires_at=expires_at,
    )
    db.add(session)
    security.last_login = current
    security.login_attempts = 0
    await db.flush()
    audit_svc.record(
        db, user_id, "ADMIN_SESSION_CREATE", f"admin_session/{session.id}",
        ip_address=session.ip_address,
        user_agent=session.user_agent,
        expires_at=expires_at.isoformat(),
    )
    await db.commit()
    await db.refresh(session)
    logger.info("Admin session %s opened for %s", session.id, user_id)
    return session, token


async def terminate_session(db: AsyncSession, user_id: uuid.UUID, session_id: uuid.UUID) -> bool:
    stmt = select(AdminSession).where(
        AdminSession.id == session_id, AdminSession.user_id == user_id
    )
    session = (await db.execute(stmt)).scalar_one_or_none()
    if not session:
        return False
    session.is_active = False
    audit_svc.record(
        db, user_id, "ADMIN_SESSION_TERMINATE", f"admin_session/{session_id}",
        ip_address=session.ip_address, user_agent=session.user_agent,
    )
    await db.commit()
    return True


async def terminate_all_sessions(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(AdminSession)
        .where(AdminSession.user_id == user_id, AdminSession.is_active.is_(True))
        .values(is_active=False)
    )
    count = result.rowcount or 0
    audit_svc.record(
        db, user_id, "ADMIN_SESSION_TERMINATE_ALL", f"admin_sessions/{user_id}",
        terminated_count=count,
    )
    await db.commit()
    logger.info("Terminated %d admin sessions for %s", count, user_id)
    return count


async def touch_session(
    db: AsyncSession, user_id: uuid.UUID, session_id: uuid.UUID, *, now: datetime | None = None
) -> AdminSession | None:
    """Record activity on a live session. Expired sessions are closed instead."""
    current = now or _utcnow()
    stmt = select(AdminSession).where(
        AdminSession.id == session_id,
        AdminSession.user_id == user_id,
        AdminSession.is_active.is_(True),
    )
    session = (await db.execute(stmt)).scalar_one_or_none()
    if not session:
        return None
    if _aware(session.expires_at) <= current:
        session.is_active = False
        await db.commit()
        return None
    session.last_activity = current
    await db.commit()
    await db.refresh(session)
    return session


async def active_session_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    stmt = select(func.count()).select_from(AdminSession).where(
        AdminSession.user_id == user_id, AdminSession.is_active.is_(True)
    )
    return (await db.execute(stmt)).scalar() or 0


async def security_log(db: AsyncSession, user_id: uuid.UUID) -> dict:
    entries = await audit_svc.list_entries(db, user_id, actions=audit_svc.SECURITY_ACTIONS)
    security = await profile_svc.get_security_settings(db, user_id)
    return {
        "security_logs": [audit_svc.to_dict(e) for e in entries],
        "security_settings": {
            "two_factor_enabled": security.two_factor_enabled,
            "session_timeout": security.session_timeout,
            "ip_whitelist": security.ip_whitelist,
            "password_change_required": security.password_change_required,
            "login_attempts": security.login_attempts,
            "last_login": security.last_login.isoformat() if security.last_login else None,
        },
        "active_sessions_count": await active_session_count(db, user_id),
    }
