"""Contact, ContactGroup and ContactGroupMember models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OwnerMixin, TimestampMixin, UUIDMixin


class Contact(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "contact"
    __table_args__ = (
        Index("ix_contact_user_phone", "user_id", "phone"),
    )

    first_name: Mapped[str | None] = mapped_column(String(100), default=None)
    last_name: Mapped[str | None] = mapped_column(String(100), default=None)
    phone: Mapped[str | None] = mapped_column(String(20), default=None)
    email: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    tags: Mapped[list | None] = mapped_column(JSON, default=None)
    metadata_json: Mapped[dict | None] = mapped_column(JSON, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def full_name(self) -> str:
        parts = [self.first_name or "", self.last_name or ""]
        return " ".join(p for p in parts if p) or (self.phone or self.email or "")


class ContactGroup(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "contact_group"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_contact_group_user_name"),
    )

    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    contact_count: Mapped[int] = mapped_column(Integer, default=0)


class ContactGroupMember(UUIDMixin, Base):
    __tablename__ = "contact_group_member"
    __table_args__ = (
        UniqueConstraint("group_id", "contact_id", name="uq_contact_group_member"),
    )

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("contact_group.id", ondelete="CASCADE"), index=True
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("contact.id", ondelete="CASCADE"), index=True
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
