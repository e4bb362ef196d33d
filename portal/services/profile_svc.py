"""Profile and admin security settings; user management for admins."""

from __future__ import annotations

import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.billing import UserCredits
from ..models.user import AdminSecuritySetting, UserProfile
from ..security.auth import normalize_role
from ..uploads import BLOB_SCHEME, UploadStore, image_type_for
from . import audit_svc

PROFILE_FIELDS = {"first_name", "last_name", "phone", "company_name", "avatar_url"}
SECURITY_FIELDS = {
    "two_factor_enabled", "session_timeout", "ip_whitelist", "password_change_required",
}
AVATAR_URL_PREFIX = "/api/auth/avatar/"
AVATAR_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}


class AvatarRejected(Exception):
    pass


async def update_profile(db: AsyncSession, user: UserProfile, **kwargs) -> UserProfile:
    for key, value in kwargs.items():
        if key in PROFILE_FIELDS:
            setattr(user, key, value)
    await db.commit()
    await db.refresh(user)
    return user


async def get_security_settings(db: AsyncSession, user_id: uuid.UUID) -> AdminSecuritySetting:
    stmt = select(AdminSecuritySetting).where(AdminSecuritySetting.user_id == user_id)
    setting = (await db.execute(stmt)).scalar_one_or_none()
    if setting is None:
        setting = AdminSecuritySetting(user_id=user_id, login_attempts=0, session_timeout=30)
        db.add(setting)
        await db.commit()
        await db.refresh(setting)
    return setting


async def update_security_settings(
    db: AsyncSession, user_id: uuid.UUID, **kwargs
) -> AdminSecuritySetting:
    setting = await get_security_settings(db, user_id)
    was_2fa = setting.two_factor_enabled
    changed = []
    for key, value in kwargs.items():
        if key in SECURITY_FIELDS:
            setattr(setting, key, value)
            changed.append(key)
    resource = f"admin_security/{user_id}"
    if setting.two_factor_enabled != was_2fa:
        action = "ADMIN_2FA_ENABLE" if setting.two_factor_enabled else "ADMIN_2FA_DISABLE"
        audit_svc.record(db, user_id, action, resource)
    if changed:
        audit_svc.record(db, user_id, "ADMIN_SECURITY_UPDATE", resource, updated_fields=changed)
    await db.commit()
    await db.refresh(setting)
    return setting


def avatar_blob_url(avatar_url: str | None) -> str | None:
    """The stored blob behind an avatar URL this service issued."""
    if avatar_url and avatar_url.startswith(AVATAR_URL_PREFIX):
        return BLOB_SCHEME + avatar_url[len(AVATAR_URL_PREFIX):]
    return None


async def _release_avatar(db: AsyncSession, avatar_url: str, store: UploadStore) -> None:
    # Identical images share one blob; keep it while any profile still points at it.
    blob = avatar_blob_url(avatar_url)
    if blob is None:
        return
    stmt = select(func.count()).select_from(UserProfile).where(UserProfile.avatar_url == avatar_url)
    if not (await db.execute(stmt)).scalar():
        store.delete(blob)


async def set_avatar(
    db: AsyncSession,
    user: UserProfile,
    data: bytes,
    content_type: str | None,
    *,
    store: UploadStore,
) -> UserProfile:
    """Store a JPEG, PNG or GIF and point the profile at it.

    Raises AvatarRejected for other types and UploadRejected when the image
    is empty or over the store's size cap.
    """
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype not in AVATAR_TYPES:
        raise AvatarRejected("Invalid file type. Only JPEG, PNG, and GIF are allowed.")
    if image_type_for(data) is None:
        raise AvatarRejected("File content is not a JPEG, PNG or GIF image")

    stored = await store.write_bytes(data)
    previous = user.avatar_url
    user.avatar_url = AVATAR_URL_PREFIX + stored.sha256
    audit_svc.record(
        db, user.id, "ADMIN_AVATAR_UPLOAD", f"admin_profile/{user.id}",
        file_size=stored.size_bytes, file_type=ctype, avatar_url=user.avatar_url,
    )
    await db.commit()
    await db.refresh(user)
    if previous and previous != user.avatar_url:
        await _release_avatar(db, previous, store)
    return user


async def clear_avatar(db: AsyncSession, user: UserProfile, *, store: UploadStore) -> bool:
    if not user.avatar_url:
        return False
    previous = user.avatar_url
    user.avatar_url = None
    audit_svc.record(
        db, user.id, "ADMIN_AVATAR_DELETE", f"admin_profile/{user.id}", deleted=previous
    )
    await db.commit()
    await _release_avatar(db, previous, store)
    return True


async def list_users(
    db: AsyncSession,
    *,
    search: str | None = None,
    role: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[tuple[UserProfile, int]], int]:
    """Profiles with their remaining credits. Returns ([(user, credits)], total)."""
    stmt = select(UserProfile, func.coalesce(UserCredits.credits_remaining, 0)).outerjoin(
        UserCredits, UserCredits.user_id == UserProfile.id
    )
    if search:
        q = f"%{search}%"
        stmt = stmt.where(or_(
            UserProfile.email.ilike(q),
            UserProfile.first_name.ilike(q),
            UserProfile.last_name.ilike(q),
            UserProfile.company_name.ilike(q),
        ))
    if role:
        stmt = stmt.where(UserProfile.role == role)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    stmt = stmt.order_by(UserProfile.created_at.desc()).offset(offset).limit(limit)
    rows = [(user, int(credits)) for user, credits in (await db.execute(stmt)).all()]
    return rows, total


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> UserProfile | None:
    return await db.get(UserProfile, user_id)


async def update_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    role: str | None = None,
    is_active: bool | None = None,
    **profile,
) -> UserProfile | None:
    user = await get_user(db, user_id)
    if not user:
        return None
    if role is not None:
        user.role = normalize_role(role)
    if is_active is not None:
        user.is_active = is_active
        if is_active:
            user.locked_until = None
            user.failed_login_attempts = 0
    for key, value in profile.items():
        if key in PROFILE_FIELDS:
            setattr(user, key, value)
    await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: uuid.UUID) -> bool:
    user = await get_user(db, user_id)
    if not user:
        return False
    await db.delete(user)
    await db.commit()
    return True
