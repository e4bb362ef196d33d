"""Service catalog, subscriptions and activation requests."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON, Boolean, DateTime, Float, ForeignKey, String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OwnerMixin, TimestampMixin, UUIDMixin

SERVICE_TYPES = ("sms", "whatsapp", "ussd", "mpesa", "shortcode", "survey")


class ServiceCatalog(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "service_catalog"

    service_name: Mapped[str] = mapped_column(String(100), unique=True)
    service_type: Mapped[str] = mapped_column(String(20), index=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    provider: Mapped[str | None] = mapped_column(String(50), default=None)
    setup_fee: Mapped[float] = mapped_column(Float, default=0.0)
    monthly_fee: Mapped[float] = mapped_column(Float, default=0.0)
    transaction_fee_type: Mapped[str] = mapped_column(String(20), default="fixed")  # fixed/percentage
    transaction_fee_amount: Mapped[float] = mapped_column(Float, default=0.0)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    configuration: Mapped[dict | None] = mapped_column(JSON, default=None)


class ServiceSubscription(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "service_subscription"
    __table_args__ = (
        UniqueConstraint("user_id", "service_id", name="uq_service_subscription_user_service"),
    )

    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_catalog.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending/active/suspended/cancelled
    setup_fee_paid: Mapped[bool] = mapped_column(Boolean, default=False)
    monthly_billing_active: Mapped[bool] = mapped_column(Boolean, default=False)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    configuration: Mapped[dict | None] = mapped_column(JSON, default=None)


class ServiceActivationRequest(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "service_activation_request"

    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_catalog.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)  # pending/approved/rejected
    business_justification: Mapped[str | None] = mapped_column(Text, default=None)
    admin_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_profile.id", ondelete="SET NULL"), default=None
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)
