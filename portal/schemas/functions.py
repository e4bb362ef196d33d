"""Request bodies for the function-style endpoints (gateway proxy, analytics, cache)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class MspaceCredentialsIn(BaseModel):
    username: str
    password: str
    senderId: str | None = None


class MspaceRequest(BaseModel):
    operation: str
    credentials: MspaceCredentialsIn | None = None
    recipient: str | None = None
    message: str | None = None
    senderId: str | None = None
    clientname: str | None = None
    subaccname: str | None = None
    noofsms: int | None = None


class AnalyticsAction(BaseModel):
    action: str
    data: dict[str, Any] | None = None


class CacheClearRequest(BaseModel):
    preserve_auth: bool = Field(default=False, alias="preserveAuth")
    preserve_user_data: bool = Field(default=False, alias="preserveUserData")
    preserve_recent: bool = Field(default=False, alias="preserveRecentQueries")

    model_config = {"populate_by_name": True}


class StaleClearRequest(BaseModel):
    max_age_seconds: float | None = None
    only_large: bool = False
    preserve_keys: list[str] = Field(default_factory=list)


class StorageItem(BaseModel):
    value: Any
