"""Profile authentication, lockout and account provisioning."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.billing import UserCredits
from ..models.user import AdminSecuritySetting, UserProfile
from ..security.auth import hash_password, is_admin, normalize_role, verify_password
from . import audit_svc

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Login refused; ``locked`` tells the caller whether to report a lockout."""

    def __init__(self, message: str, *, locked: bool = False):
        super().__init__(message)
        self.locked = locked


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def get_by_email(db: AsyncSession, email: str) -> UserProfile | None:
    normalized = (email or "").strip().lower()
    stmt = select(UserProfile).where(func.lower(UserProfile.email) == normalized)
    return (await db.execute(stmt)).scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    role: str = "user",
    user_type: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
    company_name: str | None = None,
) -> UserProfile:
    """Create a profile with an empty credit wallet."""
    email_norm = (email or "").strip().lower()
    if not email_norm:
        raise ValueError("Email is required")
    if await get_by_email(db, email_norm):
        raise ValueError("A user with that email already exists")

    role_norm = normalize_role(role)
    user = UserProfile(
        email=email_norm,
        password_hash=hash_password(password),
        role=role_norm,
        user_type=user_type or ("admin" if role_norm in {"admin", "super_admin"} else "client"),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        company_name=company_name,
    )
    db.add(user)
    await db.flush()
    db.add(UserCredits(user_id=user.id, credits_remaining=0, credits_purchased=0))
    await db.commit()
    await db.refresh(user)
    logger.info("Created %s profile %s", role_norm, email_norm)
    return user


async def authenticate(
    db: AsyncSession, email: str, password: str, *, now: datetime | None = None
) -> UserProfile:
    """Verify credentials, enforcing the failed-attempt lockout."""
    current = now or _utcnow()
    user = await get_by_email(db, email)
    if user is None or not user.is_active:
        raise AuthError("Invalid email or password")

    locked_until = _aware(user.locked_until)
    if locked_until and locked_until > current:
        raise AuthError("Account temporarily locked. Try again later.", locked=True)

    if not verify_password(password, user.password_hash):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        locked = user.failed_login_attempts >= settings.login_max_failures
        if locked:
            user.locked_until = current + timedelta(seconds=settings.login_lockout_seconds)
            user.failed_login_attempts = 0
            logger.warning("Locked %s after repeated failed logins", user.email)
        await _record_attempt(db, user, success=False)
        await db.commit()
        if locked:
            raise AuthError("Account temporarily locked. Try again later.", locked=True)
        raise AuthError("Invalid email or password")

    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login_at = current
    await _record_attempt(db, user, success=True, now=current)
    await db.commit()
    await db.refresh(user)
    return user


async def _record_attempt(
    db: AsyncSession, user: UserProfile, *, success: bool, now: datetime | None = None
) -> None:
    if not is_admin(user):
        return
    stmt = select(AdminSecuritySetting).where(AdminSecuritySetting.user_id == user.id)
    setting = (await db.execute(stmt)).scalar_one_or_none()
    if setting is None:
        setting = AdminSecuritySetting(user_id=user.id, login_attempts=0)
        db.add(setting)
    if success:
        setting.login_attempts = 0
        setting.last_login = now or _utcnow()
    else:
        setting.login_attempts = (setting.login_attempts or 0) + 1


async def change_password(
    db: AsyncSession, user: UserProfile, current_password: str, new_password: str
) -> bool:
    if not verify_password(current_password, user.password_hash):
        return False
    user.password_hash = hash_password(new_password)
    if is_admin(user):
        stmt = select(AdminSecuritySetting).where(AdminSecuritySetting.user_id == user.id)
        setting = (await db.execute(stmt)).scalar_one_or_none()
        if setting is not None:
            setting.password_last_changed = _utcnow()
            setting.password_change_required = False
        audit_svc.record(db, user.id, "ADMIN_PASSWORD_CHANGE", f"admin_profile/{user.id}")
    await db.commit()
    await db.refresh(user)
    return True


async def ensure_bootstrap_admin(db: AsyncSession) -> UserProfile | None:
    """Create the configured bootstrap admin once."""
    if not settings.bootstrap_configured:
        return None
    existing = await get_by_email(db, settings.auth_bootstrap_email)
    if existing:
        return existing
    return await create_user(
        db,
        email=settings.auth_bootstrap_email,
        password=settings.auth_bootstrap_password,
        role=settings.auth_bootstrap_role,
    )
