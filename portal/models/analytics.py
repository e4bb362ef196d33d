"""Analytics event log."""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin


class AnalyticsEvent(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "analytics_event"

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_profile.id", ondelete="SET NULL"), default=None, index=True
    )
    event_type: Mapped[str] = mapped_column(String(50), index=True)
    service_type: Mapped[str | None] = mapped_column(String(20), default=None)
    metadata_json: Mapped[dict | None] = mapped_column(JSON, default=None)
    revenue: Mapped[float] = mapped_column(Float, default=0.0)
