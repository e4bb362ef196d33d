"""Credit and service schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CreditPurchase(BaseModel):
    amount: int = Field(gt=0)
    reference: str | None = None
    description: str | None = None


class WalletResponse(BaseModel):
    credits_remaining: int
    credits_purchased: int

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    id: uuid.UUID
    type: str
    amount: int
    description: str | None = None
    reference: str | None = None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ServiceCreate(BaseModel):
    service_name: str
    service_type: Literal["sms", "whatsapp", "ussd", "mpesa", "shortcode", "survey"]
    description: str | None = None
    provider: str | None = None
    setup_fee: float = 0.0
    monthly_fee: float = 0.0
    transaction_fee_type: Literal["fixed", "percentage"] = "fixed"
    transaction_fee_amount: float = 0.0
    is_premium: bool = False
    is_active: bool = True
    configuration: dict | None = None


class ServiceUpdate(BaseModel):
    description: str | None = None
    setup_fee: float | None = None
    monthly_fee: float | None = None
    transaction_fee_amount: float | None = None
    is_premium: bool | None = None
    is_active: bool | None = None
    configuration: dict | None = None


class ServiceResponse(BaseModel):
    id: uuid.UUID
    service_name: str
    service_type: str
    description: str | None = None
    provider: str | None = None
    setup_fee: float
    monthly_fee: float
    transaction_fee_type: str
    transaction_fee_amount: float
    is_premium: bool
    is_active: bool

    model_config = {"from_attributes": True}


class ActivationRequestCreate(BaseModel):
    service_id: uuid.UUID
    business_justification: str | None = None


class ActivationRequestResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    service_id: uuid.UUID
    status: str
    business_justification: str | None = None
    admin_id: uuid.UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None

    model_config = {"from_attributes": True}


class RejectRequest(BaseModel):
    reason: str | None = None


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    service_id: uuid.UUID
    status: str
    setup_fee_paid: bool
    monthly_billing_active: bool
    activated_at: datetime | None = None
    expires_at: datetime | None = None

    model_config = {"from_attributes": True}


class SubscriptionStatusUpdate(BaseModel):
    status: Literal["pending", "active", "suspended", "cancelled"]
