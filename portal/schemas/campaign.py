"""Campaign and message history schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CampaignCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    type: Literal["sms", "whatsapp", "email"] = "sms"
    sender_id: str | None = None
    scheduled_at: datetime | None = None
    target_criteria: dict | None = None


class CampaignUpdate(BaseModel):
    name: str | None = None
    message: str | None = None
    sender_id: str | None = None
    scheduled_at: datetime | None = None
    target_criteria: dict | None = None
    status: Literal["draft", "scheduled", "paused"] | None = None


class CampaignSend(BaseModel):
    group_ids: list[uuid.UUID] | None = None
    recipients: list[str] | None = None


class CampaignResponse(BaseModel):
    id: uuid.UUID
    name: str
    type: str
    message: str
    sender_id: str | None = None
    status: str
    recipient_count: int
    sent_count: int
    delivered_count: int
    failed_count: int
    cost: float
    target_criteria: dict | None = None
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID | None = None
    type: str
    sender: str | None = None
    recipient: str
    content: str
    status: str
    provider_message_id: str | None = None
    cost: float
    error_message: str | None = None
    sent_at: datetime | None = None

    model_config = {"from_attributes": True}
