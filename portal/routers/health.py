"""Health and readiness checks."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return {"status": "healthy", "service": "portal"}


@router.get("/ready")
async def readiness_check(request: Request, db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    worker = getattr(request.app.state, "import_worker", None)
    return {
        "status": "ready",
        "service": "portal",
        "import_worker": bool(worker and worker.running),
    }
