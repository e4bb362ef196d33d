"""Admin sessions, platform API keys and the security audit log."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OwnerMixin, TimestampMixin, UUIDMixin

API_KEY_PERMISSIONS = ("read", "write", "admin", "monitor", "analytics")


class AdminSession(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "admin_session"

    session_token: Mapped[str] = mapped_column(String(64), unique=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), default=None)
    user_agent: Mapped[str | None] = mapped_column(String(500), default=None)
    location: Mapped[dict | None] = mapped_column(JSON, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_activity: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class AdminApiKey(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    """Platform API key. Only the sha256 of the key is kept."""

    __tablename__ = "admin_api_key"

    key_name: Mapped[str] = mapped_column(String(100))
    api_key_hash: Mapped[str] = mapped_column(String(64), unique=True)
    api_key_preview: Mapped[str] = mapped_column(String(20))
    permissions: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(20), default="active")
    last_used: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)


class AuditLog(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "audit_log"

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_profile.id", ondelete="SET NULL"), default=None, index=True
    )
    action: Mapped[str] = mapped_column(String(50), index=True)
    resource: Mapped[str | None] = mapped_column(String(200), default=None)
    data: Mapped[dict | None] = mapped_column(JSON, default=None)
