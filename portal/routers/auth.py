"""Login, signup, the caller's own profile and admin avatars."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models.user import UserProfile
from ..schemas.auth import (
    LoginRequest,
    PasswordChange,
    ProfileResponse,
    ProfileUpdate,
    SecuritySettingsResponse,
    SecuritySettingsUpdate,
    SignupRequest,
    TokenResponse,
)
from ..security.auth import get_current_user, issue_token, require_admin
from ..services import auth_svc, profile_svc
from ..uploads import BLOB_SCHEME, UploadNotFound, UploadRejected, UploadStore, image_type_for
from ..validation import validate_email, validate_phone

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_response(user: UserProfile) -> TokenResponse:
    return TokenResponse(
        access_token=issue_token(user),
        expires_in=settings.auth_session_ttl_seconds,
        user=ProfileResponse.model_validate(user),
    )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    try:
        user = await auth_svc.authenticate(db, body.email, body.password)
    except auth_svc.AuthError as exc:
        raise HTTPException(status_code=423 if exc.locked else 401, detail=str(exc)) from None
    return _token_response(user)


@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    ok, error = validate_email(body.email)
    if not ok or not body.email.strip():
        raise HTTPException(status_code=400, detail=error or "Email is required")
    phone = None
    if body.phone:
        result = validate_phone(body.phone)
        if not result.is_valid:
            raise HTTPException(status_code=400, detail=result.error_message)
        phone = result.formatted_number
    try:
        user = await auth_svc.create_user(
            db,
            email=body.email,
            password=body.password,
            role="user",
            first_name=body.first_name,
            last_name=body.last_name,
            phone=phone,
            company_name=body.company_name,
        )
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    return _token_response(user)


@router.get("/me", response_model=ProfileResponse)
async def me(user: UserProfile = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=ProfileResponse)
async def update_me(
    body: ProfileUpdate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await profile_svc.update_profile(db, user, **body.model_dump(exclude_unset=True))


@router.post("/password", status_code=204)
async def change_password(
    body: PasswordChange,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await auth_svc.change_password(db, user, body.current_password, body.new_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")


@router.get("/security", response_model=SecuritySettingsResponse)
async def get_security(
    admin: UserProfile = Depends(require_admin), db: AsyncSession = Depends(get_db)
):
    return await profile_svc.get_security_settings(db, admin.id)


@router.patch("/security", response_model=SecuritySettingsResponse)
async def update_security(
    body: SecuritySettingsUpdate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await profile_svc.update_security_settings(
        db, admin.id, **body.model_dump(exclude_unset=True)
    )


def get_avatar_store() -> UploadStore:
    return UploadStore(settings.avatar_dir_path, max_bytes=settings.max_avatar_bytes)


@router.post("/avatar", response_model=ProfileResponse)
async def upload_avatar(
    avatar: UploadFile = File(...),
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: UploadStore = Depends(get_avatar_store),
):
    try:
        data = await avatar.read(store.max_bytes + 1)
    finally:
        await avatar.close()
    try:
        return await profile_svc.set_avatar(db, admin, data, avatar.content_type, store=store)
    except profile_svc.AvatarRejected as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    except UploadRejected as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from None


@router.delete("/avatar", status_code=204)
async def delete_avatar(
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: UploadStore = Depends(get_avatar_store),
):
    if not await profile_svc.clear_avatar(db, admin, store=store):
        raise HTTPException(status_code=404, detail="No avatar to delete")
    return Response(status_code=204)


@router.get("/avatar/{sha256}")
async def get_avatar(sha256: str, store: UploadStore = Depends(get_avatar_store)):
    try:
        data = store.read_bytes(BLOB_SCHEME + sha256)
    except UploadNotFound:
        raise HTTPException(status_code=404, detail="Avatar not found") from None
    return Response(
        content=data,
        media_type=image_type_for(data) or "application/octet-stream",
        headers={"Cache-Control": "public, max-age=86400"},
    )
