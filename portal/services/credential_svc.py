"""Stored upstream API credentials."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import ApiCredential


def mask_key(key: str | None) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}{'*' * 8}{key[-4:]}"


async def get_active(
    db: AsyncSession, user_id: uuid.UUID, service_name: str
) -> ApiCredential | None:
    stmt = select(ApiCredential).where(
        ApiCredential.user_id == user_id,
        ApiCredential.service_name == service_name,
        ApiCredential.is_active.is_(True),
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_credentials(db: AsyncSession, user_id: uuid.UUID) -> list[ApiCredential]:
    stmt = select(ApiCredential).where(ApiCredential.user_id == user_id).order_by(
        ApiCredential.service_name
    )
    return list((await db.execute(stmt)).scalars().all())


async def upsert(
    db: AsyncSession,
    user_id: uuid.UUID,
    service_name: str,
    *,
    username: str,
    api_key: str,
    sender_id: str | None = None,
) -> ApiCredential:
    stmt = select(ApiCredential).where(
        ApiCredential.user_id == user_id, ApiCredential.service_name == service_name
    )
    cred = (await db.execute(stmt)).scalar_one_or_none()
    if cred is None:
        cred = ApiCredential(user_id=user_id, service_name=service_name)
        db.add(cred)
    cred.username = username
    cred.api_key_encrypted = api_key
    cred.sender_id = sender_id
    cred.is_active = True
    await db.commit()
    await db.refresh(cred)
    return cred


async def deactivate(db: AsyncSession, user_id: uuid.UUID, service_name: str) -> bool:
    cred = await get_active(db, user_id, service_name)
    if not cred:
        return False
    cred.is_active = False
    await db.commit()
    return True


def to_public(cred: ApiCredential) -> dict:
    return {
        "id": str(cred.id),
        "service_name": cred.service_name,
        "username": cred.username,
        "api_key": mask_key(cred.api_key_encrypted),
        "sender_id": cred.sender_id,
        "is_active": cred.is_active,
    }
