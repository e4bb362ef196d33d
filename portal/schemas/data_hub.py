"""Data hub schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ModelField(BaseModel):
    name: str
    type: Literal["string", "text", "number", "email", "phone", "date"] = "string"


class DataModelCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    fields: list[ModelField] = Field(default_factory=list)


class DataModelUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    fields: list[ModelField] | None = None


class DataModelResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    fields: list[ModelField]

    model_config = {"from_attributes": True}


class RecordResponse(BaseModel):
    id: uuid.UUID
    model_id: uuid.UUID
    data: dict

    model_config = {"from_attributes": True}


class UploadResponse(BaseModel):
    file_url: str
    filename: str | None = None
    file_type: str
    file_size: int


class ImportJobCreate(BaseModel):
    model_id: uuid.UUID
    file_url: str
    file_type: Literal["csv", "json"]
    filename: str | None = None
    file_size: int | None = None


class ImportJobResponse(BaseModel):
    id: uuid.UUID
    model_id: uuid.UUID
    filename: str | None = None
    file_url: str
    file_type: str
    file_size: int | None = None
    status: str
    total_records: int
    processed_records: int
    invalid_records: int
    progress: int
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}
