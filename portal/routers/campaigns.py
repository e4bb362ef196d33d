"""Campaign and message history routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache.context import PerformanceContext, get_performance
from ..database import get_db
from ..gateway.responses import GatewayError
from ..models.user import UserProfile
from ..schemas.campaign import (
    CampaignCreate,
    CampaignResponse,
    CampaignSend,
    CampaignUpdate,
    MessageResponse,
)
from ..security.auth import get_current_user
from ..services import campaign_svc, credit_svc, message_svc

router = APIRouter(prefix="/api", tags=["campaigns"])


@router.get("/campaigns", response_model=list[CampaignResponse])
async def campaign_list(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    status: str | None = None,
):
    return await campaign_svc.list_campaigns(db, user.id, status=status)


@router.post("/campaigns", response_model=CampaignResponse, status_code=201)
async def campaign_create(
    body: CampaignCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await campaign_svc.create_campaign(db, user.id, **body.model_dump(exclude_none=True))


@router.get("/campaigns/{campaign_id}", response_model=CampaignResponse)
async def campaign_detail(
    campaign_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    campaign = await campaign_svc.get_campaign(db, user.id, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign


@router.patch("/campaigns/{campaign_id}", response_model=CampaignResponse)
async def campaign_update(
    campaign_id: uuid.UUID,
    body: CampaignUpdate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        campaign = await campaign_svc.update_campaign(
            db, user.id, campaign_id, **body.model_dump(exclude_unset=True)
        )
    except campaign_svc.CampaignError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign


@router.delete("/campaigns/{campaign_id}", status_code=204)
async def campaign_delete(
    campaign_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await campaign_svc.delete_campaign(db, user.id, campaign_id):
        raise HTTPException(status_code=404, detail="Campaign not found")
    return Response(status_code=204)


@router.post("/campaigns/{campaign_id}/send", response_model=CampaignResponse)
async def campaign_send(
    campaign_id: uuid.UUID,
    request: Request,
    body: CampaignSend | None = None,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    perf: PerformanceContext = Depends(get_performance),
):
    body = body or CampaignSend()
    try:
        campaign = await campaign_svc.send_campaign(
            db,
            user.id,
            campaign_id,
            group_ids=body.group_ids,
            recipients=body.recipients,
            tracker=perf.tracker,
            transport=getattr(request.app.state, "gateway_transport", None),
        )
    except credit_svc.InsufficientCredits as exc:
        raise HTTPException(status_code=402, detail=str(exc)) from None
    except (campaign_svc.CampaignError, GatewayError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    perf.cache.invalidate_prefix("analytics", "messaging", str(user.id))
    return campaign


@router.get("/messages")
async def message_list(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    status: str | None = None,
    type: str | None = None,  # noqa: A002
    campaign_id: uuid.UUID | None = None,
    page: int = 1,
    per_page: int = 50,
):
    page = max(1, page)
    per_page = min(max(1, per_page), 500)
    messages, total = await message_svc.list_messages(
        db, user.id, status=status, type_=type, campaign_id=campaign_id,
        offset=(page - 1) * per_page, limit=per_page,
    )
    return {
        "items": [MessageResponse.model_validate(m).model_dump(mode="json") for m in messages],
        "total": total,
        "page": page,
        "per_page": per_page,
    }
