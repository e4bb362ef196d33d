"""User segments rebuilt from stored criteria."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin


class UserSegment(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "user_segment"

    name: Mapped[str] = mapped_column(String(100), unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    # {"role": ..., "user_type": ..., "created_after": ..., "has_premium_services": bool}
    criteria: Mapped[dict] = mapped_column(JSON, default=dict)
    user_count: Mapped[int] = mapped_column(Integer, default=0)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_profile.id", ondelete="SET NULL"), default=None
    )


class UserSegmentMember(UUIDMixin, Base):
    __tablename__ = "user_segment_member"
    __table_args__ = (
        UniqueConstraint("segment_id", "user_id", name="uq_user_segment_member"),
    )

    segment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_segment.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_profile.id", ondelete="CASCADE"), index=True
    )
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
