"""Function-style endpoints: gateway proxy, analytics processor, contact validation.

These always answer HTTP 200 with the ``{success, ...}`` envelope, auth
failures included, so callers only branch on ``success``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache.context import PerformanceContext, get_performance
from ..database import get_db
from ..models.user import UserProfile
from ..schemas.contact import ValidationRequest
from ..schemas.functions import AnalyticsAction, MspaceRequest
from ..security.auth import bearer_token, is_admin, user_from_request
from ..services import analytics_svc, contact_svc, gateway_svc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/functions", tags=["functions"])

ADMIN_ACTIONS = ("get_user_analytics", "get_service_analytics")


async def _caller(request: Request, db: AsyncSession) -> tuple[UserProfile | None, str | None]:
    if not bearer_token(request):
        return None, "Missing Authorization header"
    user = await user_from_request(request, db)
    if user is None:
        return None, "Invalid authentication"
    return user, None


async def _json_body(request: Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@router.post("/mspace-api")
async def mspace_api(
    request: Request,
    db: AsyncSession = Depends(get_db),
    perf: PerformanceContext = Depends(get_performance),
):
    payload = await _json_body(request)
    operation = payload.get("operation") if isinstance(payload.get("operation"), str) else None

    user, error = await _caller(request, db)
    if user is None:
        return gateway_svc.envelope(False, operation=operation, error=error)
    try:
        body = MspaceRequest.model_validate(payload)
    except ValidationError as exc:
        return gateway_svc.envelope(
            False, operation=operation, error=f"Invalid request: {exc.errors()[0]['msg']}"
        )

    params = {
        "recipient": body.recipient,
        "message": body.message,
        "sender_id": body.senderId,
        "clientname": body.clientname,
        "subaccname": body.subaccname,
        "noofsms": body.noofsms,
    }
    result = await gateway_svc.proxy(
        db,
        user.id,
        body.operation,
        credentials=body.credentials.model_dump() if body.credentials else None,
        tracker=perf.tracker,
        transport=getattr(request.app.state, "gateway_transport", None),
        **{k: v for k, v in params.items() if v is not None},
    )
    if result["success"] and body.operation == "sendSMS":
        perf.cache.invalidate_prefix("analytics", "messaging", str(user.id))
    return result


@router.post("/analytics-processor")
async def analytics_processor(
    request: Request,
    db: AsyncSession = Depends(get_db),
    perf: PerformanceContext = Depends(get_performance),
):
    payload = await _json_body(request)
    user, error = await _caller(request, db)
    if user is None:
        return gateway_svc.envelope(False, error=error)
    try:
        body = AnalyticsAction.model_validate(payload)
    except ValidationError:
        return gateway_svc.envelope(False, error="Invalid action")
    if body.action in ADMIN_ACTIONS and not is_admin(user):
        return gateway_svc.envelope(False, operation=body.action, error="Admin access required")

    try:
        data = await analytics_svc.process_action(db, body.action, body.data, user_id=user.id)
    except analytics_svc.AnalyticsError as exc:
        return gateway_svc.envelope(False, operation=body.action, error=str(exc))
    if body.action == "log_event":
        perf.cache.invalidate_prefix("analytics", "admin-overview")
    return gateway_svc.envelope(True, operation=body.action, data=data)


@router.post("/contact-validation")
async def contact_validation(request: Request, db: AsyncSession = Depends(get_db)):
    payload = await _json_body(request)
    user, error = await _caller(request, db)
    if user is None:
        return gateway_svc.envelope(False, error=error)
    try:
        body = ValidationRequest.model_validate(payload)
    except ValidationError as exc:
        return gateway_svc.envelope(False, error=f"Invalid request: {exc.errors()[0]['msg']}")

    data = await contact_svc.validate_contacts(db, user.id, body.contact_ids, body.validation_type)
    return gateway_svc.envelope(True, operation="validate", data=data)
