"""In-app notifications."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OwnerMixin, TimestampMixin, UUIDMixin

NOTIFICATION_STATUSES = ("unread", "read")


class Notification(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "notification"

    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(20), default="info")  # info/success/warning/error
    category: Mapped[str] = mapped_column(String(50), default="general", index=True)
    priority: Mapped[str] = mapped_column(String(20), default="normal")
    status: Mapped[str] = mapped_column(String(20), default="unread", index=True)
    action_url: Mapped[str | None] = mapped_column(String(500), default=None)
    metadata_json: Mapped[dict | None] = mapped_column(JSON, default=None)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
