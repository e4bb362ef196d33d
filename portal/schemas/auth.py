"""Auth and profile schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str
    password: str


class SignupRequest(BaseModel):
    email: str
    password: str = Field(min_length=8)
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    company_name: str | None = None


class ProfileResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    company_name: str | None = None
    avatar_url: str | None = None
    role: str
    user_type: str
    is_active: bool
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: ProfileResponse


class ProfileUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    company_name: str | None = None
    avatar_url: str | None = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


class SecuritySettingsResponse(BaseModel):
    two_factor_enabled: bool
    session_timeout: int
    ip_whitelist: list[str] | None = None
    password_change_required: bool
    password_last_changed: datetime | None = None
    login_attempts: int
    last_login: datetime | None = None

    model_config = {"from_attributes": True}


class SecuritySettingsUpdate(BaseModel):
    two_factor_enabled: bool | None = None
    session_timeout: int | None = Field(default=None, ge=5, le=1440)
    ip_whitelist: list[str] | None = None
    password_change_required: bool | None = None


class AdminUserCreate(SignupRequest):
    role: str = "user"
    initial_credits: int = Field(default=0, ge=0)


class AdminUserUpdate(ProfileUpdate):
    role: str | None = None
    is_active: bool | None = None


class AdminUserResponse(ProfileResponse):
    credits_remaining: int = 0


class CreditAllocation(BaseModel):
    amount: int
    description: str | None = None


class CredentialUpsert(BaseModel):
    service_name: str = "mspace"
    username: str
    api_key: str
    sender_id: str | None = None
