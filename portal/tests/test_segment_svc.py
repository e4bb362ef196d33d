"""User segments: criteria, refresh and potential-size analysis."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.service import ServiceSubscription
from portal.models.user import UserProfile
from portal.services import auth_svc, segment_svc, service_svc
from portal.services.segment_svc import SegmentError


@pytest.mark.asyncio
async def test_refresh_by_role_replaces_members(
    db: AsyncSession, user: UserProfile, admin: UserProfile
):
    segment = await segment_svc.create_segment(db, name="Clients", criteria={"role": "user"})
    refreshed = await segment_svc.refresh_segment_users(db, segment.id)
    assert refreshed.user_count == 1
    assert refreshed.last_updated is not None
    assert [u.email for u in await segment_svc.segment_members(db, segment.id)] == [
        "client@example.com"
    ]

    await auth_svc.create_user(db, email="second@example.com", password="second-pass-1")
    refreshed = await segment_svc.refresh_segment_users(db, segment.id)
    assert refreshed.user_count == 2
    assert len(await segment_svc.segment_members(db, segment.id)) == 2


@pytest.mark.asyncio
async def test_refresh_by_user_type_and_created_after(
    db: AsyncSession, user: UserProfile, admin: UserProfile
):
    admins = await segment_svc.create_segment(db, name="Admins", criteria={"user_type": "admin"})
    assert (await segment_svc.refresh_segment_users(db, admins.id)).user_count == 1

    future = await segment_svc.create_segment(
        db, name="Future", criteria={"created_after": "2999-01-01T00:00:00Z"}
    )
    assert (await segment_svc.refresh_segment_users(db, future.id)).user_count == 0

    everyone = await segment_svc.create_segment(
        db, name="Since 2000", criteria={"created_after": "2000-01-01"}
    )
    assert (await segment_svc.refresh_segment_users(db, everyone.id)).user_count == 2


@pytest.mark.asyncio
async def test_premium_criterion_needs_active_premium_subscription(
    db: AsyncSession, user: UserProfile, admin: UserProfile
):
    premium = await service_svc.create_service(
        db, service_name="Shortcode", service_type="shortcode", is_premium=True
    )
    basic = await service_svc.create_service(db, service_name="SMS", service_type="sms")
    db.add(ServiceSubscription(user_id=user.id, service_id=premium.id, status="active"))
    db.add(ServiceSubscription(user_id=admin.id, service_id=basic.id, status="active"))
    await db.commit()

    segment = await segment_svc.create_segment(
        db, name="Premium", criteria={"has_premium_services": True}
    )
    await segment_svc.refresh_segment_users(db, segment.id)
    assert [u.id for u in await segment_svc.segment_members(db, segment.id)] == [user.id]


@pytest.mark.asyncio
async def test_analyze_breaks_down_by_role_and_type(
    db: AsyncSession, user: UserProfile, admin: UserProfile
):
    result = await segment_svc.analyze_segment_potential(db, {})
    assert result["potential_users"] == 2
    assert result["breakdown"]["by_role"] == {"user": 1, "admin": 1}
    assert result["breakdown"]["by_user_type"] == {"client": 1, "admin": 1}

    clients = await segment_svc.analyze_segment_potential(db, {"role": "user"})
    assert clients["potential_users"] == 1


@pytest.mark.asyncio
async def test_criteria_are_cleaned_and_checked(db: AsyncSession):
    assert segment_svc.clean_criteria(
        {"role": "user", "colour": "blue", "user_type": "", "has_premium_services": False}
    ) == {"role": "user"}
    with pytest.raises(SegmentError):
        segment_svc.clean_criteria({"created_after": "last tuesday"})

    await segment_svc.create_segment(db, name="Dup")
    with pytest.raises(SegmentError):
        await segment_svc.create_segment(db, name="Dup")


@pytest.mark.asyncio
async def test_missing_segment(db: AsyncSession):
    assert await segment_svc.refresh_segment_users(db, uuid.uuid4()) is None
    assert not await segment_svc.delete_segment(db, uuid.uuid4())
