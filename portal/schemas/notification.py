"""Notification schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationCreate(BaseModel):
    user_id: uuid.UUID | None = None
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    type: str | None = None
    category: str | None = None
    priority: str | None = None
    action_url: str | None = None
    metadata: dict[str, Any] | None = None
    expires_at: datetime | None = None


class NotificationResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    message: str
    type: str
    category: str
    priority: str
    status: str
    action_url: str | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_json")
    read_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
