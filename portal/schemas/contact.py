"""Contact and group schemas."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, Field


class ContactCreate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email: str | None = None
    tags: list[str] | None = None
    metadata_json: dict | None = Field(default=None, alias="metadata")
    is_active: bool = True

    model_config = {"populate_by_name": True}


class ContactUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email: str | None = None
    tags: list[str] | None = None
    is_active: bool | None = None


class ContactResponse(BaseModel):
    id: uuid.UUID
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email: str | None = None
    tags: list[str] | None = None
    is_active: bool

    model_config = {"from_attributes": True}


class ContactList(BaseModel):
    items: list[ContactResponse]
    total: int
    page: int
    per_page: int


class ContactIds(BaseModel):
    contact_ids: list[uuid.UUID]


class BulkContacts(BaseModel):
    contacts: list[dict]


class ValidationRequest(BaseModel):
    contact_ids: list[uuid.UUID] = Field(default_factory=list, alias="contactIds")
    validation_type: Literal["phone", "email", "all"] = Field(default="all", alias="validationType")

    model_config = {"populate_by_name": True}


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class GroupUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class GroupResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    contact_count: int

    model_config = {"from_attributes": True}
