"""The caller's in-app notifications."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import UserProfile
from ..schemas.notification import NotificationCreate, NotificationResponse
from ..security.auth import get_current_user, is_admin
from ..services import notification_svc, profile_svc

router = APIRouter(prefix="/api", tags=["notifications"])


@router.get("/notifications", response_model=list[NotificationResponse])
async def notification_list(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    status: str | None = None,
    type: str | None = None,
    category: str | None = None,
    limit: int | None = Query(default=None, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    return await notification_svc.list_notifications(
        db, user.id, status=status, type=type, category=category, limit=limit, offset=offset
    )


@router.post("/notifications", response_model=NotificationResponse, status_code=201)
async def notification_create(
    body: NotificationCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target = body.user_id or user.id
    if target != user.id:
        if not is_admin(user):
            raise HTTPException(status_code=403, detail="Only admins can notify other users")
        if not await profile_svc.get_user(db, target):
            raise HTTPException(status_code=404, detail="User not found")
    return await notification_svc.create_notification(
        db, target, **body.model_dump(exclude={"user_id"})
    )


@router.post("/notifications/read-all")
async def notification_read_all(
    user: UserProfile = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    return {"updated": await notification_svc.mark_all_read(db, user.id)}


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def notification_read(
    notification_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await notification_svc.mark_read(db, user.id, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.delete("/notifications/{notification_id}", status_code=204)
async def notification_delete(
    notification_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await notification_svc.delete_notification(db, user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return Response(status_code=204)
