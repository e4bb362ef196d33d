"""Admin sessions, the security log and platform API keys."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import UserProfile
from ..schemas.admin import ApiKeyCreate, ApiKeyUpdate, SessionCreate
from ..security.auth import require_admin
from ..services import api_key_svc, session_svc

router = APIRouter(prefix="/api/admin", tags=["admin-security"])


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else None)


# --- sessions ------------------------------------------------------------


@router.get("/sessions")
async def session_list(admin: UserProfile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return [session_svc.to_public(s) for s in await session_svc.list_sessions(db, admin.id)]


@router.post("/sessions", status_code=201)
async def session_create(
    request: Request,
    body: SessionCreate | None = None,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    body = body or SessionCreate()
    session, token = await session_svc.create_session(
        db,
        admin.id,
        ip_address=body.ip_address or _client_ip(request),
        user_agent=body.user_agent or request.headers.get("user-agent"),
        location=body.location,
    )
    return {
        "session_id": str(session.id),
        "session_token": token,
        "expires_at": session.expires_at.isoformat(),
    }


@router.delete("/sessions")
async def session_terminate_all(
    admin: UserProfile = Depends(require_admin), db: AsyncSession = Depends(get_db)
):
    return {"terminated_count": await session_svc.terminate_all_sessions(db, admin.id)}


@router.delete("/sessions/{session_id}", status_code=204)
async def session_terminate(
    session_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await session_svc.terminate_session(db, admin.id, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


@router.post("/sessions/{session_id}/activity")
async def session_activity(
    session_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    session = await session_svc.touch_session(db, admin.id, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found or expired")
    return session_svc.to_public(session)


@router.get("/security-log")
async def security_log(admin: UserProfile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await session_svc.security_log(db, admin.id)


# --- API keys ------------------------------------------------------------


@router.get("/api-keys")
async def api_key_list(admin: UserProfile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return [api_key_svc.to_public(k) for k in await api_key_svc.list_keys(db, admin.id)]


@router.post("/api-keys", status_code=201)
async def api_key_create(
    body: ApiKeyCreate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        key, api_key = await api_key_svc.create_key(
            db, admin.id, name=body.name, permissions=body.permissions, expires_at=body.expires_at
        )
    except api_key_svc.ApiKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    return {**api_key_svc.to_public(key), "api_key": api_key}


@router.patch("/api-keys/{key_id}")
async def api_key_update(
    key_id: uuid.UUID,
    body: ApiKeyUpdate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        key = await api_key_svc.update_key(db, admin.id, key_id, **body.model_dump(exclude_unset=True))
    except api_key_svc.ApiKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    if not key:
        raise HTTPException(status_code=404, detail="API key not found")
    return api_key_svc.to_public(key)


@router.delete("/api-keys/{key_id}", status_code=204)
async def api_key_delete(
    key_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await api_key_svc.delete_key(db, admin.id, key_id):
        raise HTTPException(status_code=404, detail="API key not found")
    return Response(status_code=204)


@router.post("/api-keys/{key_id}/regenerate")
async def api_key_regenerate(
    key_id: uuid.UUID,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await api_key_svc.regenerate_key(db, admin.id, key_id)
    if not result:
        raise HTTPException(status_code=404, detail="API key not found")
    key, api_key = result
    return {**api_key_svc.to_public(key), "api_key": api_key}
