"""User segments: stored criteria over profiles, rebuilt on demand."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.segment import UserSegment, UserSegmentMember
from ..models.service import ServiceCatalog, ServiceSubscription
from ..models.user import UserProfile

logger = logging.getLogger(__name__)

CRITERIA_KEYS = {"role", "user_type", "created_after", "has_premium_services"}


class SegmentError(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_criteria(criteria: dict | None) -> dict:
    """Drop unknown keys and empty values; ``created_after`` must be ISO 8601."""
    cleaned = {}
    for key, value in (criteria or {}).items():
        if key not in CRITERIA_KEYS or value in (None, "", False):
            continue
        if key == "created_after":
            try:
                parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            except ValueError:
                raise SegmentError(f"created_after is not an ISO date: {value!r}") from None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            value = parsed.astimezone(timezone.utc).isoformat()
        cleaned[key] = value
    return cleaned


def _profile_query(criteria: dict, *columns):
    stmt = select(*columns)
    if criteria.get("role"):
        stmt = stmt.where(UserProfile.role == criteria["role"])
    if criteria.get("user_type"):
        stmt = stmt.where(UserProfile.user_type == criteria["user_type"])
    if criteria.get("created_after"):
        stmt = stmt.where(UserProfile.created_at >= datetime.fromisoformat(criteria["created_after"]))
    if criteria.get("has_premium_services"):
        premium = (
            select(ServiceSubscription.user_id)
            .join(ServiceCatalog, ServiceCatalog.id == ServiceSubscription.service_id)
            .where(ServiceSubscription.status == "active", ServiceCatalog.is_premium.is_(True))
        )
        stmt = stmt.where(UserProfile.id.in_(premium))
    return stmt


async def list_segments(db: AsyncSession) -> list[UserSegment]:
    stmt = select(UserSegment).order_by(UserSegment.name)
    return list((await db.execute(stmt)).scalars().all())


async def get_segment(db: AsyncSession, segment_id: uuid.UUID) -> UserSegment | None:
    return await db.get(UserSegment, segment_id)


async def create_segment(
    db: AsyncSession,
    *,
    name: str,
    criteria: dict | None = None,
    description: str | None = None,
    created_by: uuid.UUID | None = None,
) -> UserSegment:
    existing = (await db.execute(
        select(UserSegment).where(UserSegment.name == name)
    )).scalar_one_or_none()
    if existing:
        raise SegmentError(f"Segment '{name}' already exists")
    segment = UserSegment(
        name=name,
        description=description,
        criteria=clean_criteria(criteria),
        user_count=0,
        created_by=created_by,
    )
    db.add(segment)
    await db.commit()
    await db.refresh(segment)
    return segment


async def delete_segment(db: AsyncSession, segment_id: uuid.UUID) -> bool:
    segment = await get_segment(db, segment_id)
    if not segment:
        return False
    await db.delete(segment)
    await db.commit()
    return True


async def refresh_segment_users(
    db: AsyncSession, segment_id: uuid.UUID, *, now: datetime | None = None
) -> UserSegment | None:
    """Replace the segment's members with every profile matching its criteria."""
    segment = await get_segment(db, segment_id)
    if not segment:
        return None
    current = now or _utcnow()
    user_ids = list((await db.execute(
        _profile_query(segment.criteria or {}, UserProfile.id)
    )).scalars().all())

    await db.execute(delete(UserSegmentMember).where(UserSegmentMember.segment_id == segment_id))
    db.add_all(
        UserSegmentMember(segment_id=segment_id, user_id=user_id, added_at=current)
        for user_id in user_ids
    )
    segment.user_count = len(user_ids)
    segment.last_updated = current
    await db.commit()
    await db.refresh(segment)
    logger.info("Refreshed segment %s with %d users", segment_id, len(user_ids))
    return segment


async def segment_members(db: AsyncSession, segment_id: uuid.UUID) -> list[UserProfile]:
    stmt = (
        select(UserProfile)
        .join(UserSegmentMember, UserSegmentMember.user_id == UserProfile.id)
        .where(UserSegmentMember.segment_id == segment_id)
        .order_by(UserProfile.email)
    )
    return list((await db.execute(stmt)).scalars().all())


async def analyze_segment_potential(db: AsyncSession, criteria: dict | None) -> dict:
    """How many profiles the criteria would match, by role and user type."""
    rows = (await db.execute(
        _profile_query(clean_criteria(criteria), UserProfile.role, UserProfile.user_type)
    )).all()
    return {
        "potential_users": len(rows),
        "breakdown": {
            "by_role": dict(Counter(role for role, _ in rows)),
            "by_user_type": dict(Counter(user_type for _, user_type in rows)),
        },
    }
