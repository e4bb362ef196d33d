"""Gateway proxy: credential lookup, dispatch and the response envelope."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..gateway.client import OPERATIONS, MspaceClient, MspaceCredentials
from ..gateway.responses import GatewayError
from ..security.throttle import RequestTracker
from . import credential_svc, message_svc

logger = logging.getLogger(__name__)

SERVICE_NAME = "mspace"


class CredentialsNotFound(GatewayError):
    def __init__(self):
        super().__init__(
            "Mspace credentials not found. Please configure your credentials first.",
            "CREDENTIALS_MISSING",
        )


def envelope(
    success: bool,
    *,
    operation: str | None = None,
    data: Any = None,
    error: str | None = None,
) -> dict:
    body: dict[str, Any] = {"success": success}
    if operation is not None:
        body["operation"] = operation
    if success:
        body["data"] = data
    else:
        body["error"] = error
    body["timestamp"] = datetime.now(timezone.utc).isoformat()
    return body


async def resolve_credentials(
    db: AsyncSession, user_id: uuid.UUID, supplied: dict | None = None
) -> MspaceCredentials:
    """Request-supplied credentials win; otherwise the user's stored login."""
    if supplied and supplied.get("username") and supplied.get("password"):
        return MspaceCredentials(
            username=supplied["username"],
            password=supplied["password"],
            sender_id=supplied.get("senderId") or supplied.get("sender_id"),
        )

    stored = await credential_svc.get_active(db, user_id, SERVICE_NAME)
    if stored is None:
        raise CredentialsNotFound()
    key = stored.api_key_encrypted or ""
    expected = settings.mspace_api_key_length
    if len(key) != expected:
        raise GatewayError(
            f"Invalid Mspace API key format. Expected {expected} characters, got {len(key)}",
            "CREDENTIALS_INVALID",
        )
    return MspaceCredentials(
        username=stored.username,
        password=key,
        sender_id=stored.sender_id or settings.mspace_default_sender_id,
    )


async def call(
    db: AsyncSession,
    user_id: uuid.UUID,
    operation: str,
    *,
    credentials: dict | None = None,
    tracker: RequestTracker | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    **params,
) -> Any:
    """Run one gateway operation for a user and return the interpreted payload."""
    if operation not in OPERATIONS:
        raise GatewayError(f"Unknown operation: {operation}")
    creds = await resolve_credentials(db, user_id, credentials)
    logger.info("Mspace call %s for user %s (username=%s)", operation, user_id, creds.username)

    async with MspaceClient(
        creds, tracker=tracker, identifier=str(user_id), transport=transport
    ) as mspace:
        data = await mspace.call(operation, **params)

    if operation == "sendSMS":
        ok = data.get("status") == "successful"
        message_svc.record_message(
            db,
            user_id,
            recipient=params.get("recipient") or "",
            content=params.get("message") or "",
            sender=params.get("sender_id") or creds.sender_id,
            status="sent" if ok else "failed",
            provider_message_id=data.get("messageId"),
            error_message=data.get("error"),
        )
        await db.commit()
    return data


async def proxy(
    db: AsyncSession,
    user_id: uuid.UUID,
    operation: str,
    **kwargs,
) -> dict:
    """Like :func:`call`, but every outcome is folded into the envelope."""
    try:
        data = await call(db, user_id, operation, **kwargs)
    except GatewayError as exc:
        logger.warning("Mspace %s failed: %s", operation, exc)
        return envelope(False, operation=operation, error=str(exc))
    return envelope(True, operation=operation, data=data)
