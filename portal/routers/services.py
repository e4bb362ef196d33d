"""Service catalog, activation request and subscription routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache.context import PerformanceContext, get_performance
from ..config import settings
from ..database import get_db
from ..models.user import UserProfile
from ..schemas.billing import (
    ActivationRequestCreate,
    ActivationRequestResponse,
    RejectRequest,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
    SubscriptionResponse,
    SubscriptionStatusUpdate,
)
from ..security.auth import get_current_user, require_admin
from ..services import service_svc

router = APIRouter(prefix="/api/services", tags=["services"])

CATALOG_KEY = ("services", "catalog")


@router.get("/catalog")
async def catalog(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    perf: PerformanceContext = Depends(get_performance),
):
    async def _load() -> list[dict]:
        rows = await service_svc.list_catalog(db)
        return [ServiceResponse.model_validate(s).model_dump(mode="json") for s in rows]

    return await perf.cache.fetch(CATALOG_KEY, _load, stale_after=settings.cache_stale_seconds)


@router.post("/catalog", response_model=ServiceResponse, status_code=201)
async def catalog_create(
    body: ServiceCreate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    perf: PerformanceContext = Depends(get_performance),
):
    service = await service_svc.create_service(db, **body.model_dump())
    perf.cache.remove(CATALOG_KEY)
    return service


@router.patch("/catalog/{service_id}", response_model=ServiceResponse)
async def catalog_update(
    service_id: uuid.UUID,
    body: ServiceUpdate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    perf: PerformanceContext = Depends(get_performance),
):
    service = await service_svc.update_service(db, service_id, **body.model_dump(exclude_unset=True))
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    perf.cache.remove(CATALOG_KEY)
    return service


@router.get("/overview")
async def overview(user: UserProfile = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await service_svc.service_overview(db, user.id)


@router.post("/requests", response_model=ActivationRequestResponse, status_code=201)
async def request_activation(
    body: ActivationRequestCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service_svc.request_activation(
            db, user.id, body.service_id, business_justification=body.business_justification
        )
    except service_svc.ServiceError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None


@router.get("/requests", response_model=list[ActivationRequestResponse])
async def my_requests(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    status: str | None = None,
):
    return await service_svc.list_requests(db, user_id=user.id, status=status)


@router.get("/subscriptions", response_model=list[SubscriptionResponse])
async def my_subscriptions(
    user: UserProfile = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    return await service_svc.list_subscriptions(db, user_id=user.id)


@router.post("/subscriptions/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await service_svc.cancel_subscription(db, user.id, subscription_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


# --- admin ---------------------------------------------------------------


@router.get("/admin/requests", response_model=list[ActivationRequestResponse])
async def all_requests(
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    status: str | None = "pending",
):
    return await service_svc.list_requests(db, status=status or None)


@router.post("/admin/requests/{request_id}/approve", response_model=SubscriptionResponse)
async def approve(
    request_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        subscription = await service_svc.approve_request(db, request_id, admin.id)
    except service_svc.ServiceError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    if not subscription:
        raise HTTPException(status_code=404, detail="Request not found")
    return subscription


@router.post("/admin/requests/{request_id}/reject", response_model=ActivationRequestResponse)
async def reject(
    request_id: uuid.UUID,
    body: RejectRequest,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        request = await service_svc.reject_request(db, request_id, admin.id, body.reason)
    except service_svc.ServiceError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    if not request:
        raise HTTPException(status_code=404, detail="Request not found")
    return request


@router.get("/admin/subscriptions", response_model=list[SubscriptionResponse])
async def all_subscriptions(
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    status: str | None = None,
):
    return await service_svc.list_subscriptions(db, status=status)


@router.patch("/admin/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def set_subscription_status(
    subscription_id: uuid.UUID,
    body: SubscriptionStatusUpdate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    subscription = await service_svc.set_subscription_status(db, subscription_id, body.status)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription
