"""Admin sessions, platform API keys and user segments."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SessionCreate(BaseModel):
    ip_address: str | None = None
    user_agent: str | None = None
    location: dict[str, Any] | None = None


class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    permissions: list[str]
    expires_at: datetime | None = None


class ApiKeyUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    permissions: list[str] | None = None
    expires_at: datetime | None = None
    status: str | None = None


class SegmentCriteria(BaseModel):
    role: str | None = None
    user_type: str | None = None
    created_after: str | None = None
    has_premium_services: bool = False


class SegmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    criteria: SegmentCriteria = Field(default_factory=SegmentCriteria)


class SegmentResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    criteria: dict[str, Any]
    user_count: int
    last_updated: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
