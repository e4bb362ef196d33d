"""User profiles, admin security settings and stored gateway credentials."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OwnerMixin, TimestampMixin, UUIDMixin

ROLES = ("user", "reseller", "admin", "super_admin")


class UserProfile(UUIDMixin, TimestampMixin, Base):
    """A portal login: client, reseller or administrator."""

    __tablename__ = "user_profile"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    first_name: Mapped[str | None] = mapped_column(String(100), default=None)
    last_name: Mapped[str | None] = mapped_column(String(100), default=None)
    phone: Mapped[str | None] = mapped_column(String(20), default=None)
    company_name: Mapped[str | None] = mapped_column(String(200), default=None)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    role: Mapped[str] = mapped_column(String(20), default="user", index=True)
    user_type: Mapped[str] = mapped_column(String(20), default="client")  # client/reseller/admin
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    @property
    def full_name(self) -> str:
        parts = [self.first_name or "", self.last_name or ""]
        return " ".join(p for p in parts if p) or self.email

    def __repr__(self) -> str:
        return f"<UserProfile {self.email!r} ({self.role})>"


class AdminSecuritySetting(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "admin_security_setting"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_admin_security_setting_user"),
    )

    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    session_timeout: Mapped[int] = mapped_column(Integer, default=30)  # minutes
    ip_whitelist: Mapped[list | None] = mapped_column(JSON, default=None)
    password_change_required: Mapped[bool] = mapped_column(Boolean, default=False)
    password_last_changed: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    login_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)


class ApiCredential(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    """Upstream provider login for one service (e.g. ``mspace``)."""

    __tablename__ = "api_credential"
    __table_args__ = (
        UniqueConstraint("user_id", "service_name", name="uq_api_credential_user_service"),
    )

    service_name: Mapped[str] = mapped_column(String(50), index=True)
    username: Mapped[str] = mapped_column(String(100))
    # Stored as provided; the column name matches the hosted schema.
    api_key_encrypted: Mapped[str] = mapped_column(String(255))
    sender_id: Mapped[str | None] = mapped_column(String(20), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
