"""Campaign service - CRUD and SMS send-out."""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..gateway.client import MspaceClient
from ..gateway.responses import GatewayError
from ..models.campaign import Campaign
from ..security.throttle import RequestTracker
from ..validation import valid_phone_numbers
from . import credit_svc, gateway_svc, group_svc, message_svc

logger = logging.getLogger(__name__)


class CampaignError(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def segments_for(message: str) -> int:
    """SMS segments needed for one message (one credit each)."""
    return max(1, math.ceil(len(message or "") / settings.sms_segment_length))


@dataclass
class SendOutcome:
    recipient: str
    ok: bool
    error: str | None = None
    provider_message_id: str | None = None


async def list_campaigns(
    db: AsyncSession, user_id: uuid.UUID, *, status: str | None = None
) -> list[Campaign]:
    stmt = select(Campaign).where(Campaign.user_id == user_id)
    if status:
        stmt = stmt.where(Campaign.status == status)
    stmt = stmt.order_by(Campaign.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def get_campaign(
    db: AsyncSession, user_id: uuid.UUID, campaign_id: uuid.UUID
) -> Campaign | None:
    stmt = select(Campaign).where(Campaign.id == campaign_id, Campaign.user_id == user_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def create_campaign(db: AsyncSession, user_id: uuid.UUID, **kwargs) -> Campaign:
    if kwargs.get("scheduled_at") and not kwargs.get("status"):
        kwargs["status"] = "scheduled"
    campaign = Campaign(user_id=user_id, **kwargs)
    db.add(campaign)
    await db.commit()
    await db.refresh(campaign)
    return campaign


async def update_campaign(
    db: AsyncSession, user_id: uuid.UUID, campaign_id: uuid.UUID, **kwargs
) -> Campaign | None:
    campaign = await get_campaign(db, user_id, campaign_id)
    if not campaign:
        return None
    if campaign.status in ("sending", "completed"):
        raise CampaignError(f"Cannot edit a campaign that is {campaign.status}")
    for key, value in kwargs.items():
        setattr(campaign, key, value)
    await db.commit()
    await db.refresh(campaign)
    return campaign


async def delete_campaign(db: AsyncSession, user_id: uuid.UUID, campaign_id: uuid.UUID) -> bool:
    campaign = await get_campaign(db, user_id, campaign_id)
    if not campaign:
        return False
    await db.delete(campaign)
    await db.commit()
    return True


async def resolve_recipients(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    group_ids: list[uuid.UUID] | None = None,
    recipients: list[str] | None = None,
) -> list[str]:
    """Normalized, de-duplicated numbers from explicit lists and groups."""
    numbers = list(recipients or [])
    numbers.extend(await group_svc.member_phones(db, user_id, list(group_ids or [])))
    return valid_phone_numbers(numbers)


async def send_campaign(
    db: AsyncSession,
    user_id: uuid.UUID,
    campaign_id: uuid.UUID,
    *,
    group_ids: list[uuid.UUID] | None = None,
    recipients: list[str] | None = None,
    tracker: RequestTracker | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Campaign | None:
    """Send an SMS campaign now.

    Only draft or scheduled campaigns can be sent. Credits are checked up
    front for every recipient, but only messages the gateway accepted are
    charged.
    """
    campaign = await get_campaign(db, user_id, campaign_id)
    if not campaign:
        return None
    if not campaign.is_sendable:
        raise CampaignError(f"Campaign cannot be sent from status '{campaign.status}'")
    if campaign.type != "sms":
        raise CampaignError("Only SMS campaigns can be sent through the gateway")

    criteria = campaign.target_criteria or {}
    if group_ids is None and criteria.get("group_ids"):
        group_ids = [uuid.UUID(str(g)) for g in criteria["group_ids"]]
    if recipients is None and criteria.get("recipients"):
        recipients = list(criteria["recipients"])

    numbers = await resolve_recipients(db, user_id, group_ids=group_ids, recipients=recipients)
    if not numbers:
        raise CampaignError("No valid recipients")

    per_message = segments_for(campaign.message)
    required = per_message * len(numbers)
    balance = await credit_svc.get_balance(db, user_id)
    if balance < required:
        raise credit_svc.InsufficientCredits(required, balance)

    creds = await gateway_svc.resolve_credentials(db, user_id)
    sender = campaign.sender_id or creds.sender_id

    campaign.status = "sending"
    campaign.recipient_count = len(numbers)
    campaign.sent_at = _utcnow()
    await db.commit()

    outcomes: list[SendOutcome] = []
    try:
        async with MspaceClient(
            creds, tracker=tracker, identifier=str(user_id), transport=transport
        ) as mspace:
            for number in numbers:
                outcome = await _send_one(mspace, campaign, number, sender)
                if not outcome.ok:
                    logger.warning(
                        "Campaign %s: send to %s failed: %s", campaign.id, number, outcome.error
                    )
                outcomes.append(outcome)

        sent = _record_outcomes(db, campaign, outcomes, sender, per_message)
        if sent:
            await credit_svc.deduct(
                db,
                user_id,
                sent * per_message,
                description=f"Campaign: {campaign.name}",
                reference=str(campaign.id),
                commit=False,
            )
        _finish(campaign, outcomes, per_message)
        await db.commit()
    except Exception:
        # keep the history of messages already sent; never leave the
        # campaign in sending
        await db.rollback()
        await db.refresh(campaign)
        _record_outcomes(db, campaign, outcomes, sender, per_message, charged=False)
        _finish(campaign, outcomes, per_message, charged=False)
        await db.commit()
        logger.error(
            "Campaign %s aborted after %d of %d sends", campaign.id, len(outcomes), len(numbers)
        )
        raise

    await db.refresh(campaign)
    logger.info(
        "Campaign %s finished: %d sent, %d failed",
        campaign.id, campaign.sent_count, campaign.failed_count,
    )
    return campaign


async def _send_one(
    mspace: MspaceClient, campaign: Campaign, number: str, sender: str | None
) -> SendOutcome:
    try:
        result = await mspace.send_sms(number, campaign.message, sender_id=sender)
    except GatewayError as exc:
        return SendOutcome(number, False, str(exc))
    ok = result.get("status") == "successful"
    return SendOutcome(number, ok, None if ok else result.get("error"), result.get("messageId"))


def _record_outcomes(
    db: AsyncSession,
    campaign: Campaign,
    outcomes: list[SendOutcome],
    sender: str | None,
    per_message: int,
    *,
    charged: bool = True,
) -> int:
    """Stage message_history rows; returns how many were sent."""
    for outcome in outcomes:
        message_svc.record_message(
            db,
            campaign.user_id,
            campaign_id=campaign.id,
            recipient=outcome.recipient,
            content=campaign.message,
            sender=sender,
            status="sent" if outcome.ok else "failed",
            provider_message_id=outcome.provider_message_id,
            error_message=outcome.error,
            cost=float(per_message) if outcome.ok and charged else 0.0,
        )
    return sum(1 for o in outcomes if o.ok)


def _finish(
    campaign: Campaign, outcomes: list[SendOutcome], per_message: int, *, charged: bool = True
) -> None:
    sent = sum(1 for o in outcomes if o.ok)
    campaign.sent_count = sent
    campaign.failed_count = len(outcomes) - sent
    campaign.cost = float(sent * per_message) if charged else 0.0
    campaign.status = "completed" if sent and charged else "failed"
    campaign.completed_at = _utcnow()
