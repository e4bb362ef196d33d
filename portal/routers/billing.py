"""Credits and billing routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import UserProfile
from ..schemas.billing import CreditPurchase, TransactionResponse, WalletResponse
from ..security.auth import get_current_user
from ..services import credit_svc

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.get("/credits", response_model=WalletResponse)
async def wallet(user: UserProfile = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await credit_svc.get_wallet(db, user.id)
    await db.commit()
    return result


@router.post("/credits/purchase", response_model=WalletResponse)
async def purchase(
    body: CreditPurchase,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await credit_svc.purchase(
        db, user.id, body.amount, description=body.description, reference=body.reference
    )


@router.get("/transactions", response_model=list[TransactionResponse])
async def transactions(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    type: str | None = None,  # noqa: A002
    page: int = 1,
    per_page: int = 50,
):
    page = max(1, page)
    return await credit_svc.list_transactions(
        db, user.id, type_=type, offset=(page - 1) * per_page, limit=min(per_page, 500)
    )


@router.get("/summary")
async def summary(user: UserProfile = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await credit_svc.billing_summary(db, user.id)
