"""Password hashing, signed bearer tokens, API key login and role-based FastAPI dependencies."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import secrets
import time
import uuid
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models.user import ROLES, UserProfile
from ..services import api_key_svc

ADMIN_ROLES = {"admin", "super_admin"}
READ_METHODS = {"GET", "HEAD", "OPTIONS"}


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    role: str
    issued_at: int
    expires_at: int


def hash_password(password: str, iterations: int = 200_000) -> str:
    """Hash a password using PBKDF2-SHA256."""
    if not password:
        raise ValueError("Password is required")
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return (
        f"pbkdf2_sha256${iterations}$"
        f"{binascii.hexlify(salt).decode('ascii')}$"
        f"{binascii.hexlify(digest).decode('ascii')}"
    )


def verify_password(password: str, stored_hash: str) -> bool:
    if not password or not stored_hash:
        return False
    try:
        scheme, iterations_raw, salt_hex, digest_hex = stored_hash.split("$", 3)
        if scheme != "pbkdf2_sha256":
            return False
        iterations = int(iterations_raw)
        salt = binascii.unhexlify(salt_hex.encode("ascii"))
        expected = binascii.unhexlify(digest_hex.encode("ascii"))
    except (ValueError, binascii.Error):
        return False

    actual = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(actual, expected)


def normalize_role(role: str | None) -> str:
    role_norm = (role or "").strip().lower()
    return role_norm if role_norm in ROLES else "user"


def role_at_least(role: str, minimum: str) -> bool:
    return ROLES.index(normalize_role(role)) >= ROLES.index(normalize_role(minimum))


def is_admin(user: UserProfile) -> bool:
    return normalize_role(user.role) in ADMIN_ROLES


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * ((4 - (len(data) % 4)) % 4)
    return base64.urlsafe_b64decode((data + padding).encode("utf-8"))


def _sign(body: str) -> str:
    secret = settings.auth_secret.encode("utf-8")
    return hmac.new(secret, body.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_token(user: UserProfile, *, now: float | None = None) -> str:
    issued = int(now if now is not None else time.time())
    payload = {
        "sub": str(user.id),
        "role": normalize_role(user.role),
        "iat": issued,
        "exp": issued + max(60, settings.auth_session_ttl_seconds),
    }
    body = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    return f"{body}.{_sign(body)}"


def decode_token(token: str, *, now: float | None = None) -> TokenClaims | None:
    """Return the claims of a valid, unexpired token, else None."""
    if not token or "." not in token:
        return None
    body, signature = token.rsplit(".", 1)
    if not hmac.compare_digest(signature, _sign(body)):
        return None
    try:
        payload = json.loads(_b64url_decode(body))
        claims = TokenClaims(
            user_id=uuid.UUID(str(payload["sub"])),
            role=normalize_role(payload.get("role")),
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )
    except (ValueError, KeyError, TypeError, binascii.Error):
        return None
    current = now if now is not None else time.time()
    if claims.expires_at <= current:
        return None
    return claims


def bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return value.strip()


async def user_from_request(request: Request, db: AsyncSession) -> UserProfile | None:
    claims = decode_token(bearer_token(request))
    if claims is None:
        return None
    user = await db.get(UserProfile, claims.user_id)
    if user is None or not user.is_active:
        return None
    return user


async def user_from_api_key(request: Request, db: AsyncSession) -> UserProfile | None:
    """Owner of a valid ``X-API-Key``; keys without write access may only read."""
    api_key = request.headers.get("x-api-key", "").strip()
    if not api_key:
        return None
    key = await api_key_svc.verify_key(db, api_key)
    if key is None:
        return None
    permissions = set(key.permissions or [])
    if request.method not in READ_METHODS and not permissions & {"write", "admin"}:
        return None
    user = await db.get(UserProfile, key.user_id)
    if user is None or not user.is_active:
        return None
    request.state.api_key_permissions = permissions
    return user


async def get_current_user(
    request: Request, db: AsyncSession = Depends(get_db)
) -> UserProfile:
    user = await user_from_request(request, db) or await user_from_api_key(request, db)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(
    request: Request, user: UserProfile = Depends(get_current_user)
) -> UserProfile:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admin access required")
    key_permissions = getattr(request.state, "api_key_permissions", None)
    if key_permissions is not None and "admin" not in key_permissions:
        raise HTTPException(status_code=403, detail="API key lacks admin permission")
    return user
