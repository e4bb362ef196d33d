"""Credit wallet, ledger and billing summary."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.billing import CreditTransaction, UserCredits


class InsufficientCredits(Exception):
    def __init__(self, required: int, available: int):
        super().__init__(f"Insufficient credits: {required} required, {available} available")
        self.required = required
        self.available = available


async def get_wallet(db: AsyncSession, user_id: uuid.UUID) -> UserCredits:
    """Return the user's wallet, creating an empty one if missing. Does not commit."""
    stmt = select(UserCredits).where(UserCredits.user_id == user_id)
    wallet = (await db.execute(stmt)).scalar_one_or_none()
    if wallet is None:
        wallet = UserCredits(user_id=user_id, credits_remaining=0, credits_purchased=0)
        db.add(wallet)
        await db.flush()
    return wallet


async def get_balance(db: AsyncSession, user_id: uuid.UUID) -> int:
    return (await get_wallet(db, user_id)).credits_remaining


def _record(
    db: AsyncSession,
    user_id: uuid.UUID,
    type_: str,
    amount: int,
    description: str | None,
    reference: str | None,
) -> CreditTransaction:
    txn = CreditTransaction(
        user_id=user_id,
        type=type_,
        amount=amount,
        description=description,
        reference=reference,
        status="completed",
    )
    db.add(txn)
    return txn


async def purchase(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: int,
    *,
    description: str | None = None,
    reference: str | None = None,
) -> UserCredits:
    if amount <= 0:
        raise ValueError("Amount must be positive")
    wallet = await get_wallet(db, user_id)
    wallet.credits_remaining += amount
    wallet.credits_purchased += amount
    _record(db, user_id, "purchase", amount, description or "Credit purchase", reference)
    await db.commit()
    await db.refresh(wallet)
    return wallet


async def deduct(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: int,
    *,
    description: str | None = None,
    reference: str | None = None,
    commit: bool = True,
) -> UserCredits:
    """Spend credits; raises InsufficientCredits without touching the wallet."""
    wallet = await get_wallet(db, user_id)
    if amount <= 0:
        return wallet
    if wallet.credits_remaining < amount:
        raise InsufficientCredits(amount, wallet.credits_remaining)
    wallet.credits_remaining -= amount
    _record(db, user_id, "usage", -amount, description or "Credit usage", reference)
    if commit:
        await db.commit()
        await db.refresh(wallet)
    return wallet


async def refund(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: int,
    *,
    description: str | None = None,
    reference: str | None = None,
) -> UserCredits:
    if amount <= 0:
        raise ValueError("Amount must be positive")
    wallet = await get_wallet(db, user_id)
    wallet.credits_remaining += amount
    _record(db, user_id, "refund", amount, description or "Credit refund", reference)
    await db.commit()
    await db.refresh(wallet)
    return wallet


async def adjust(
    db: AsyncSession, user_id: uuid.UUID, amount: int, *, description: str | None = None
) -> UserCredits:
    """Admin allocation (positive) or clawback (negative)."""
    wallet = await get_wallet(db, user_id)
    if wallet.credits_remaining + amount < 0:
        raise InsufficientCredits(-amount, wallet.credits_remaining)
    wallet.credits_remaining += amount
    if amount > 0:
        wallet.credits_purchased += amount
    _record(db, user_id, "adjustment", amount, description or "Admin adjustment", None)
    await db.commit()
    await db.refresh(wallet)
    return wallet


async def list_transactions(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    type_: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[CreditTransaction]:
    stmt = select(CreditTransaction).where(CreditTransaction.user_id == user_id)
    if type_:
        stmt = stmt.where(CreditTransaction.type == type_)
    stmt = stmt.order_by(CreditTransaction.created_at.desc()).offset(offset).limit(limit)
    return list((await db.execute(stmt)).scalars().all())


async def billing_summary(
    db: AsyncSession, user_id: uuid.UUID, *, now: datetime | None = None
) -> dict:
    current = now or datetime.now(timezone.utc)
    month_start = current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    wallet = await get_wallet(db, user_id)

    spent = (await db.execute(
        select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id, CreditTransaction.type == "usage"
        )
    )).scalar() or 0
    month_spent = (await db.execute(
        select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id,
            CreditTransaction.type == "usage",
            CreditTransaction.created_at >= month_start,
        )
    )).scalar() or 0
    await db.commit()

    return {
        "credits_remaining": wallet.credits_remaining,
        "credits_purchased": wallet.credits_purchased,
        "credits_spent": -int(spent),
        "spent_this_month": -int(month_spent),
    }
