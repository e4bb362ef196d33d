"""Platform API keys: issue, rotate, revoke and verify."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.user import UserProfile
from portal.services import api_key_svc, audit_svc
from portal.services.api_key_svc import ApiKeyError


@pytest.mark.asyncio
async def test_create_returns_plain_key_once_and_stores_hash(
    db: AsyncSession, admin: UserProfile
):
    key, api_key = await api_key_svc.create_key(
        db, admin.id, name="Reporting", permissions=["read", "bogus", "read", "analytics"]
    )
    assert api_key.startswith("admin_") and len(api_key) == 6 + 64
    assert key.api_key_hash == hashlib.sha256(api_key.encode()).hexdigest()
    assert key.api_key_preview == api_key[:12] + "..."
    assert key.permissions == ["read", "analytics"]
    assert key.status == "active"

    public = api_key_svc.to_public(key)
    assert api_key not in str(public)
    assert public["api_key_preview"] == key.api_key_preview


@pytest.mark.asyncio
async def test_default_expiry_is_one_year(db: AsyncSession, admin: UserProfile):
    before = datetime.now(timezone.utc)
    key, _ = await api_key_svc.create_key(db, admin.id, name="K", permissions=["read"])
    expires = key.expires_at if key.expires_at.tzinfo else key.expires_at.replace(tzinfo=timezone.utc)
    assert timedelta(days=364) < expires - before <= timedelta(days=365, minutes=1)


@pytest.mark.asyncio
async def test_create_needs_a_valid_permission(db: AsyncSession, admin: UserProfile):
    with pytest.raises(ApiKeyError):
        await api_key_svc.create_key(db, admin.id, name="K", permissions=["root"])
    assert await api_key_svc.list_keys(db, admin.id) == []


@pytest.mark.asyncio
async def test_update_checks_permissions_and_owner(
    db: AsyncSession, admin: UserProfile, user: UserProfile
):
    key, _ = await api_key_svc.create_key(db, admin.id, name="K", permissions=["read"])

    updated = await api_key_svc.update_key(
        db, admin.id, key.id, name="Renamed", permissions=["read", "write"]
    )
    assert updated.key_name == "Renamed"
    assert updated.permissions == ["read", "write"]

    with pytest.raises(ApiKeyError):
        await api_key_svc.update_key(db, admin.id, key.id, permissions=["nope"])
    with pytest.raises(ApiKeyError):
        await api_key_svc.update_key(db, admin.id, key.id, status="paused")
    assert await api_key_svc.update_key(db, user.id, key.id, name="Mine") is None


@pytest.mark.asyncio
async def test_regenerate_invalidates_the_old_key(db: AsyncSession, admin: UserProfile):
    key, old = await api_key_svc.create_key(db, admin.id, name="K", permissions=["read"])
    assert (await api_key_svc.verify_key(db, old)).id == key.id

    rotated, new = await api_key_svc.regenerate_key(db, admin.id, key.id)
    assert new != old
    assert rotated.key_name == "K"
    assert await api_key_svc.verify_key(db, old) is None
    verified = await api_key_svc.verify_key(db, new)
    assert verified.id == key.id
    assert verified.last_used is not None


@pytest.mark.asyncio
async def test_revoked_and_expired_keys_do_not_verify(db: AsyncSession, admin: UserProfile):
    key, revoked = await api_key_svc.create_key(db, admin.id, name="R", permissions=["read"])
    await api_key_svc.update_key(db, admin.id, key.id, status="revoked")
    assert await api_key_svc.verify_key(db, revoked) is None

    past = datetime.now(timezone.utc) - timedelta(days=1)
    _, expired = await api_key_svc.create_key(
        db, admin.id, name="E", permissions=["read"], expires_at=past
    )
    assert await api_key_svc.verify_key(db, expired) is None
    assert await api_key_svc.verify_key(db, "not-a-key") is None


@pytest.mark.asyncio
async def test_key_changes_are_audited(db: AsyncSession, admin: UserProfile):
    key, _ = await api_key_svc.create_key(db, admin.id, name="K", permissions=["read"])
    await api_key_svc.regenerate_key(db, admin.id, key.id)
    assert await api_key_svc.delete_key(db, admin.id, key.id)
    assert not await api_key_svc.delete_key(db, admin.id, key.id)

    actions = {e.action for e in await audit_svc.list_entries(db, admin.id)}
    assert actions == {"ADMIN_API_KEY_CREATE", "ADMIN_API_KEY_REGENERATE", "ADMIN_API_KEY_DELETE"}
