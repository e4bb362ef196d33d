"""Contact and contact group routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import UserProfile
from ..schemas.contact import (
    BulkContacts,
    ContactCreate,
    ContactIds,
    ContactList,
    ContactResponse,
    ContactUpdate,
    GroupCreate,
    GroupResponse,
    GroupUpdate,
    ValidationRequest,
)
from ..security.auth import get_current_user
from ..services import contact_svc, group_svc

router = APIRouter(prefix="/api", tags=["contacts"])


@router.get("/contacts", response_model=ContactList)
async def contact_list(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    search: str | None = None,
    group_id: uuid.UUID | None = None,
    active: bool | None = None,
    page: int = 1,
    per_page: int = 50,
):
    page = max(1, page)
    per_page = min(max(1, per_page), 500)
    contacts, total = await contact_svc.list_contacts(
        db, user.id, search=search, group_id=group_id, active=active,
        offset=(page - 1) * per_page, limit=per_page,
    )
    return ContactList(
        items=[ContactResponse.model_validate(c) for c in contacts],
        total=total, page=page, per_page=per_page,
    )


@router.post("/contacts", response_model=ContactResponse, status_code=201)
async def contact_create(
    body: ContactCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await contact_svc.create_contact(db, user.id, **body.model_dump(exclude_none=True))
    except contact_svc.ContactValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None


@router.post("/contacts/bulk")
async def contact_bulk_create(
    body: BulkContacts,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await contact_svc.bulk_create(db, user.id, body.contacts)


@router.post("/contacts/bulk-delete")
async def contact_bulk_delete(
    body: ContactIds,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"deleted": await contact_svc.bulk_delete(db, user.id, body.contact_ids)}


@router.post("/contacts/validate")
async def contact_validate(
    body: ValidationRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await contact_svc.validate_contacts(
        db, user.id, body.contact_ids, body.validation_type
    )


@router.get("/contacts/{contact_id}", response_model=ContactResponse)
async def contact_detail(
    contact_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    contact = await contact_svc.get_contact(db, user.id, contact_id)
    if not contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


@router.patch("/contacts/{contact_id}", response_model=ContactResponse)
async def contact_update(
    contact_id: uuid.UUID,
    body: ContactUpdate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        contact = await contact_svc.update_contact(
            db, user.id, contact_id, **body.model_dump(exclude_unset=True)
        )
    except contact_svc.ContactValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    if not contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


@router.delete("/contacts/{contact_id}", status_code=204)
async def contact_delete(
    contact_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await contact_svc.delete_contact(db, user.id, contact_id):
        raise HTTPException(status_code=404, detail="Contact not found")
    return Response(status_code=204)


@router.get("/groups", response_model=list[GroupResponse])
async def group_list(
    user: UserProfile = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    return await group_svc.list_groups(db, user.id)


@router.post("/groups", response_model=GroupResponse, status_code=201)
async def group_create(
    body: GroupCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await group_svc.create_group(db, user.id, body.name, body.description)


@router.patch("/groups/{group_id}", response_model=GroupResponse)
async def group_update(
    group_id: uuid.UUID,
    body: GroupUpdate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    group = await group_svc.update_group(db, user.id, group_id, **body.model_dump(exclude_unset=True))
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


@router.delete("/groups/{group_id}", status_code=204)
async def group_delete(
    group_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await group_svc.delete_group(db, user.id, group_id):
        raise HTTPException(status_code=404, detail="Group not found")
    return Response(status_code=204)


@router.get("/groups/{group_id}/members", response_model=list[ContactResponse])
async def group_members(
    group_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    members = await group_svc.list_members(db, user.id, group_id)
    if members is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return members


@router.post("/groups/{group_id}/members")
async def group_add_members(
    group_id: uuid.UUID,
    body: ContactIds,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    added = await group_svc.add_members(db, user.id, group_id, body.contact_ids)
    if added is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return {"added": added}


@router.delete("/groups/{group_id}/members/{contact_id}", status_code=204)
async def group_remove_member(
    group_id: uuid.UUID,
    contact_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await group_svc.remove_member(db, user.id, group_id, contact_id):
        raise HTTPException(status_code=404, detail="Member not found")
    return Response(status_code=204)
