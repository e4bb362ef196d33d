"""Admin user management: clients, resellers, credits, segments and stored credentials."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import UserProfile
from ..schemas.admin import SegmentCreate, SegmentCriteria, SegmentResponse
from ..schemas.auth import (
    AdminUserCreate,
    AdminUserResponse,
    AdminUserUpdate,
    CreditAllocation,
    CredentialUpsert,
)
from ..security.auth import get_current_user, require_admin
from ..services import auth_svc, credential_svc, credit_svc, profile_svc, segment_svc

router = APIRouter(prefix="/api", tags=["admin"])


def _user_row(user: UserProfile, credits: int) -> dict:
    data = AdminUserResponse.model_validate(user).model_dump(mode="json")
    data["credits_remaining"] = credits
    return data


@router.get("/admin/users")
async def user_list(
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    search: str | None = None,
    role: str | None = None,
    page: int = 1,
    per_page: int = 50,
):
    page = max(1, page)
    rows, total = await profile_svc.list_users(
        db, search=search, role=role, offset=(page - 1) * per_page, limit=min(per_page, 500)
    )
    return {"items": [_user_row(u, c) for u, c in rows], "total": total, "page": page}


@router.post("/admin/users", status_code=201)
async def user_create(
    body: AdminUserCreate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await auth_svc.create_user(
            db,
            email=body.email,
            password=body.password,
            role=body.role,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            company_name=body.company_name,
        )
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    credits = 0
    if body.initial_credits:
        wallet = await credit_svc.adjust(
            db, user.id, body.initial_credits, description="Initial allocation"
        )
        credits = wallet.credits_remaining
    return _user_row(user, credits)


@router.patch("/admin/users/{user_id}")
async def user_update(
    user_id: uuid.UUID,
    body: AdminUserUpdate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if user_id == admin.id and body.is_active is False:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user = await profile_svc.update_user(db, user_id, **body.model_dump(exclude_unset=True))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_row(user, await credit_svc.get_balance(db, user.id))


@router.delete("/admin/users/{user_id}", status_code=204)
async def user_delete(
    user_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    if not await profile_svc.delete_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return Response(status_code=204)


@router.post("/admin/users/{user_id}/credits")
async def allocate_credits(
    user_id: uuid.UUID,
    body: CreditAllocation,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await profile_svc.get_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    try:
        wallet = await credit_svc.adjust(db, user_id, body.amount, description=body.description)
    except credit_svc.InsufficientCredits as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    return {"user_id": str(user_id), "credits_remaining": wallet.credits_remaining}


@router.get("/admin/segments", response_model=list[SegmentResponse])
async def segment_list(admin: UserProfile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await segment_svc.list_segments(db)


@router.post("/admin/segments", response_model=SegmentResponse, status_code=201)
async def segment_create(
    body: SegmentCreate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await segment_svc.create_segment(
            db,
            name=body.name,
            description=body.description,
            criteria=body.criteria.model_dump(),
            created_by=admin.id,
        )
    except segment_svc.SegmentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None


@router.post("/admin/segments/analyze")
async def segment_analyze(
    body: SegmentCriteria,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await segment_svc.analyze_segment_potential(db, body.model_dump())
    except segment_svc.SegmentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None


@router.post("/admin/segments/{segment_id}/refresh", response_model=SegmentResponse)
async def segment_refresh(
    segment_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    segment = await segment_svc.refresh_segment_users(db, segment_id)
    if not segment:
        raise HTTPException(status_code=404, detail="Segment not found")
    return segment


@router.get("/admin/segments/{segment_id}/members")
async def segment_member_list(
    segment_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await segment_svc.get_segment(db, segment_id):
        raise HTTPException(status_code=404, detail="Segment not found")
    members = await segment_svc.segment_members(db, segment_id)
    return [AdminUserResponse.model_validate(u).model_dump(mode="json") for u in members]


@router.delete("/admin/segments/{segment_id}", status_code=204)
async def segment_delete(
    segment_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await segment_svc.delete_segment(db, segment_id):
        raise HTTPException(status_code=404, detail="Segment not found")
    return Response(status_code=204)


@router.get("/credentials")
async def credential_list(
    user: UserProfile = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    return [credential_svc.to_public(c) for c in await credential_svc.list_credentials(db, user.id)]


@router.put("/credentials")
async def credential_upsert(
    body: CredentialUpsert,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cred = await credential_svc.upsert(
        db, user.id, body.service_name,
        username=body.username, api_key=body.api_key, sender_id=body.sender_id,
    )
    return credential_svc.to_public(cred)


@router.delete("/credentials/{service_name}", status_code=204)
async def credential_deactivate(
    service_name: str,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await credential_svc.deactivate(db, user.id, service_name):
        raise HTTPException(status_code=404, detail="Credential not found")
    return Response(status_code=204)
