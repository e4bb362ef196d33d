"""Platform API keys issued to administrators."""

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.admin import API_KEY_PERMISSIONS, AdminApiKey
from . import audit_svc

KEY_PREFIX = "admin_"


class ApiKeyError(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_key() -> str:
    return KEY_PREFIX + secrets.token_hex(32)


def hash_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def preview(api_key: str) -> str:
    return f"{api_key[:12]}..."


def clean_permissions(permissions: list[str] | None) -> list[str]:
    """Known permissions in request order; unknown ones are dropped."""
    kept: list[str] = []
    for p in permissions or []:
        if p in API_KEY_PERMISSIONS and p not in kept:
            kept.append(p)
    if not kept:
        raise ApiKeyError("At least one valid permission is required")
    return kept


def to_public(key: AdminApiKey) -> dict:
    return {
        "id": str(key.id),
        "key_name": key.key_name,
        "api_key_preview": key.api_key_preview,
        "permissions": list(key.permissions or []),
        "status": key.status,
        "last_used": key.last_used.isoformat() if key.last_used else None,
        "expires_at": key.expires_at.isoformat() if key.expires_at else None,
        "created_at": key.created_at.isoformat() if key.created_at else None,
    }


async def list_keys(db: AsyncSession, user_id: uuid.UUID) -> list[AdminApiKey]:
    stmt = select(AdminApiKey).where(AdminApiKey.user_id == user_id).order_by(
        AdminApiKey.created_at.desc()
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_key(db: AsyncSession, user_id: uuid.UUID, key_id: uuid.UUID) -> AdminApiKey | None:
    stmt = select(AdminApiKey).where(AdminApiKey.id == key_id, AdminApiKey.user_id == user_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def create_key(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    name: str,
    permissions: list[str],
    expires_at: datetime | None = None,
) -> tuple[AdminApiKey, str]:
    """Issue a key; the plain key is returned here and never again."""
    perms = clean_permissions(permissions)
    expiry = expires_at or _utcnow() + timedelta(days=settings.admin_api_key_ttl_days)
    api_key = generate_key()
    key = AdminApiKey(
        user_id=user_id,
        key_name=name,
        api_key_hash=hash_key(api_key),
        api_key_preview=preview(api_key),
        permissions=perms,
        status="active",
        expires_at=expiry,
    )
    db.add(key)
    await db.flush()
    audit_svc.record(
        db, user_id, "ADMIN_API_KEY_CREATE", f"admin_api_key/{key.id}",
        key_name=name, permissions=perms, expires_at=expiry.isoformat(),
    )
    await db.commit()
    await db.refresh(key)
    return key, api_key


async def update_key(
    db: AsyncSession,
    user_id: uuid.UUID,
    key_id: uuid.UUID,
    *,
    name: str | None = None,
    permissions: list[str] | None = None,
    expires_at: datetime | None = None,
    status: str | None = None,
) -> AdminApiKey | None:
    key = await get_key(db, user_id, key_id)
    if not key:
        return None
    updated = []
    if permissions is not None:
        key.permissions = clean_permissions(permissions)
        updated.append("permissions")
    if name:
        key.key_name = name
        updated.append("key_name")
    if expires_at is not None:
        key.expires_at = expires_at
        updated.append("expires_at")
    if status is not None:
        if status not in ("active", "revoked"):
            raise ApiKeyError(f"Unknown key status '{status}'")
        key.status = status
        updated.append("status")
    audit_svc.record(
        db, user_id, "ADMIN_API_KEY_UPDATE", f"admin_api_key/{key_id}", updated_fields=updated
    )
    await db.commit()
    await db.refresh(key)
    return key


async def delete_key(db: AsyncSession, user_id: uuid.UUID, key_id: uuid.UUID) -> bool:
    key = await get_key(db, user_id, key_id)
    if not key:
        return False
    audit_svc.record(
        db, user_id, "ADMIN_API_KEY_DELETE", f"admin_api_key/{key_id}", key_name=key.key_name
    )
    await db.delete(key)
    await db.commit()
    return True


async def regenerate_key(
    db: AsyncSession, user_id: uuid.UUID, key_id: uuid.UUID
) -> tuple[AdminApiKey, str] | None:
    """Replace the secret; name, permissions and expiry are kept."""
    key = await get_key(db, user_id, key_id)
    if not key:
        return None
    api_key = generate_key()
    key.api_key_hash = hash_key(api_key)
    key.api_key_preview = preview(api_key)
    audit_svc.record(
        db, user_id, "ADMIN_API_KEY_REGENERATE", f"admin_api_key/{key_id}", key_name=key.key_name
    )
    await db.commit()
    await db.refresh(key)
    return key, api_key


async def verify_key(
    db: AsyncSession, api_key: str, *, now: datetime | None = None
) -> AdminApiKey | None:
    """The active, unexpired key matching ``api_key``; records its use."""
    if not api_key or not api_key.startswith(KEY_PREFIX):
        return None
    stmt = select(AdminApiKey).where(AdminApiKey.api_key_hash == hash_key(api_key))
    key = (await db.execute(stmt)).scalar_one_or_none()
    if key is None or key.status != "active":
        return None
    current = now or _utcnow()
    expires = key.expires_at
    if expires is not None and expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    if expires is not None and expires <= current:
        return None
    key.last_used = current
    await db.commit()
    return key
