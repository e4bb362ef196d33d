"""Service catalog, activation requests and subscriptions."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.service import ServiceActivationRequest, ServiceCatalog, ServiceSubscription

logger = logging.getLogger(__name__)

SUBSCRIPTION_STATUSES = ("pending", "active", "suspended", "cancelled")


class ServiceError(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def list_catalog(db: AsyncSession, *, include_inactive: bool = False) -> list[ServiceCatalog]:
    stmt = select(ServiceCatalog)
    if not include_inactive:
        stmt = stmt.where(ServiceCatalog.is_active.is_(True))
    stmt = stmt.order_by(ServiceCatalog.service_type, ServiceCatalog.service_name)
    return list((await db.execute(stmt)).scalars().all())


async def get_service(db: AsyncSession, service_id: uuid.UUID) -> ServiceCatalog | None:
    return await db.get(ServiceCatalog, service_id)


async def create_service(db: AsyncSession, **kwargs) -> ServiceCatalog:
    service = ServiceCatalog(**kwargs)
    db.add(service)
    await db.commit()
    await db.refresh(service)
    return service


async def update_service(
    db: AsyncSession, service_id: uuid.UUID, **kwargs
) -> ServiceCatalog | None:
    service = await get_service(db, service_id)
    if not service:
        return None
    for key, value in kwargs.items():
        setattr(service, key, value)
    await db.commit()
    await db.refresh(service)
    return service


async def request_activation(
    db: AsyncSession,
    user_id: uuid.UUID,
    service_id: uuid.UUID,
    *,
    business_justification: str | None = None,
) -> ServiceActivationRequest:
    service = await get_service(db, service_id)
    if not service or not service.is_active:
        raise ServiceError("Service not available")

    pending = (await db.execute(
        select(ServiceActivationRequest).where(
            ServiceActivationRequest.user_id == user_id,
            ServiceActivationRequest.service_id == service_id,
            ServiceActivationRequest.status == "pending",
        )
    )).scalar_one_or_none()
    if pending:
        raise ServiceError("An activation request for this service is already pending")

    subscription = await _get_subscription(db, user_id, service_id)
    if subscription and subscription.status == "active":
        raise ServiceError("Service is already active")

    request = ServiceActivationRequest(
        user_id=user_id,
        service_id=service_id,
        status="pending",
        business_justification=business_justification,
    )
    db.add(request)
    await db.commit()
    await db.refresh(request)
    return request


async def list_requests(
    db: AsyncSession,
    *,
    user_id: uuid.UUID | None = None,
    status: str | None = None,
) -> list[ServiceActivationRequest]:
    stmt = select(ServiceActivationRequest)
    if user_id:
        stmt = stmt.where(ServiceActivationRequest.user_id == user_id)
    if status:
        stmt = stmt.where(ServiceActivationRequest.status == status)
    stmt = stmt.order_by(ServiceActivationRequest.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def _get_subscription(
    db: AsyncSession, user_id: uuid.UUID, service_id: uuid.UUID
) -> ServiceSubscription | None:
    stmt = select(ServiceSubscription).where(
        ServiceSubscription.user_id == user_id, ServiceSubscription.service_id == service_id
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def approve_request(
    db: AsyncSession, request_id: uuid.UUID, admin_id: uuid.UUID
) -> ServiceSubscription | None:
    """Approve a pending request and activate the matching subscription."""
    request = await db.get(ServiceActivationRequest, request_id)
    if not request:
        return None
    if request.status != "pending":
        raise ServiceError(f"Request already {request.status}")

    now = _utcnow()
    request.status = "approved"
    request.admin_id = admin_id
    request.approved_at = now

    subscription = await _get_subscription(db, request.user_id, request.service_id)
    if subscription is None:
        subscription = ServiceSubscription(user_id=request.user_id, service_id=request.service_id)
        db.add(subscription)
    subscription.status = "active"
    subscription.activated_at = now
    subscription.monthly_billing_active = True
    await db.commit()
    await db.refresh(subscription)
    logger.info("Activated service %s for user %s", request.service_id, request.user_id)
    return subscription


async def reject_request(
    db: AsyncSession, request_id: uuid.UUID, admin_id: uuid.UUID, reason: str | None = None
) -> ServiceActivationRequest | None:
    request = await db.get(ServiceActivationRequest, request_id)
    if not request:
        return None
    if request.status != "pending":
        raise ServiceError(f"Request already {request.status}")
    request.status = "rejected"
    request.admin_id = admin_id
    request.rejection_reason = reason
    await db.commit()
    await db.refresh(request)
    return request


async def list_subscriptions(
    db: AsyncSession, *, user_id: uuid.UUID | None = None, status: str | None = None
) -> list[ServiceSubscription]:
    stmt = select(ServiceSubscription)
    if user_id:
        stmt = stmt.where(ServiceSubscription.user_id == user_id)
    if status:
        stmt = stmt.where(ServiceSubscription.status == status)
    return list((await db.execute(stmt.order_by(ServiceSubscription.created_at))).scalars().all())


async def set_subscription_status(
    db: AsyncSession, subscription_id: uuid.UUID, status: str
) -> ServiceSubscription | None:
    if status not in SUBSCRIPTION_STATUSES:
        raise ServiceError(f"Invalid status: {status}")
    subscription = await db.get(ServiceSubscription, subscription_id)
    if not subscription:
        return None
    subscription.status = status
    if status == "active" and subscription.activated_at is None:
        subscription.activated_at = _utcnow()
    subscription.monthly_billing_active = status == "active"
    await db.commit()
    await db.refresh(subscription)
    return subscription


async def cancel_subscription(
    db: AsyncSession, user_id: uuid.UUID, subscription_id: uuid.UUID
) -> ServiceSubscription | None:
    subscription = await db.get(ServiceSubscription, subscription_id)
    if not subscription or subscription.user_id != user_id:
        return None
    return await set_subscription_status(db, subscription_id, "cancelled")


async def service_overview(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """Catalog entries annotated with the user's subscription state."""
    catalog = await list_catalog(db)
    subs = {s.service_id: s for s in await list_subscriptions(db, user_id=user_id)}
    pending = {r.service_id for r in await list_requests(db, user_id=user_id, status="pending")}
    overview = []
    for service in catalog:
        sub = subs.get(service.id)
        overview.append({
            "service_id": str(service.id),
            "service_name": service.service_name,
            "service_type": service.service_type,
            "monthly_fee": service.monthly_fee,
            "setup_fee": service.setup_fee,
            "is_premium": service.is_premium,
            "subscription_status": sub.status if sub else None,
            "request_pending": service.id in pending,
        })
    return overview
