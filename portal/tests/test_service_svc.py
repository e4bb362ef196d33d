"""Test service catalog, activation requests and subscriptions."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.service import ServiceCatalog
from portal.models.user import UserProfile
from portal.services import service_svc
from portal.services.service_svc import ServiceError


@pytest_asyncio.fixture
async def ussd(db: AsyncSession) -> ServiceCatalog:
    return await service_svc.create_service(
        db, service_name="USSD", service_type="ussd", monthly_fee=5000.0, setup_fee=2500.0
    )


@pytest.mark.asyncio
async def test_catalog_hides_inactive(db: AsyncSession, ussd: ServiceCatalog):
    await service_svc.create_service(db, service_name="Legacy", service_type="sms", is_active=False)
    assert [s.service_name for s in await service_svc.list_catalog(db)] == ["USSD"]
    assert len(await service_svc.list_catalog(db, include_inactive=True)) == 2


@pytest.mark.asyncio
async def test_approve_request_activates_subscription(
    db: AsyncSession, user: UserProfile, admin: UserProfile, ussd: ServiceCatalog
):
    request = await service_svc.request_activation(
        db, user.id, ussd.id, business_justification="Customer surveys"
    )
    assert request.status == "pending"

    overview = await service_svc.service_overview(db, user.id)
    assert overview[0]["request_pending"] is True
    assert overview[0]["subscription_status"] is None

    subscription = await service_svc.approve_request(db, request.id, admin.id)
    assert subscription.status == "active"
    assert subscription.monthly_billing_active is True
    assert subscription.activated_at is not None

    await db.refresh(request)
    assert request.status == "approved"
    assert request.admin_id == admin.id

    overview = await service_svc.service_overview(db, user.id)
    assert overview[0]["subscription_status"] == "active"
    assert overview[0]["request_pending"] is False

    with pytest.raises(ServiceError):
        await service_svc.approve_request(db, request.id, admin.id)
    with pytest.raises(ServiceError):
        await service_svc.request_activation(db, user.id, ussd.id)


@pytest.mark.asyncio
async def test_duplicate_pending_request_is_refused(
    db: AsyncSession, user: UserProfile, ussd: ServiceCatalog
):
    await service_svc.request_activation(db, user.id, ussd.id)
    with pytest.raises(ServiceError):
        await service_svc.request_activation(db, user.id, ussd.id)


@pytest.mark.asyncio
async def test_reject_request(
    db: AsyncSession, user: UserProfile, admin: UserProfile, ussd: ServiceCatalog
):
    request = await service_svc.request_activation(db, user.id, ussd.id)
    rejected = await service_svc.reject_request(db, request.id, admin.id, reason="Incomplete KYC")
    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "Incomplete KYC"
    assert await service_svc.list_subscriptions(db, user_id=user.id) == []

    # a fresh request is allowed after rejection
    again = await service_svc.request_activation(db, user.id, ussd.id)
    assert again.status == "pending"


@pytest.mark.asyncio
async def test_inactive_service_cannot_be_requested(db: AsyncSession, user: UserProfile):
    legacy = await service_svc.create_service(
        db, service_name="Legacy", service_type="sms", is_active=False
    )
    with pytest.raises(ServiceError):
        await service_svc.request_activation(db, user.id, legacy.id)


@pytest.mark.asyncio
async def test_subscription_status_changes(
    db: AsyncSession, user: UserProfile, admin: UserProfile, ussd: ServiceCatalog
):
    request = await service_svc.request_activation(db, user.id, ussd.id)
    subscription = await service_svc.approve_request(db, request.id, admin.id)

    suspended = await service_svc.set_subscription_status(db, subscription.id, "suspended")
    assert suspended.monthly_billing_active is False
    with pytest.raises(ServiceError):
        await service_svc.set_subscription_status(db, subscription.id, "frozen")

    assert await service_svc.cancel_subscription(db, admin.id, subscription.id) is None
    cancelled = await service_svc.cancel_subscription(db, user.id, subscription.id)
    assert cancelled.status == "cancelled"
