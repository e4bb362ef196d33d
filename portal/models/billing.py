"""Credit wallet and ledger models."""

from __future__ import annotations

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OwnerMixin, TimestampMixin, UUIDMixin


class UserCredits(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "user_credits"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_user_credits_user"),
    )

    credits_remaining: Mapped[int] = mapped_column(Integer, default=0)
    credits_purchased: Mapped[int] = mapped_column(Integer, default=0)


class CreditTransaction(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "credit_transaction"

    type: Mapped[str] = mapped_column(String(20), index=True)  # purchase/usage/refund/adjustment
    amount: Mapped[int] = mapped_column(Integer)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    reference: Mapped[str | None] = mapped_column(String(100), default=None)
    status: Mapped[str] = mapped_column(String(20), default="completed")
