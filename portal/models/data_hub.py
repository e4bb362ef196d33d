"""Data hub: user-defined data models, their records, and file import jobs."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OwnerMixin, TimestampMixin, UUIDMixin

IMPORT_STATUSES = ("pending", "processing", "completed", "failed")


class DataModel(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "data_model"

    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    # [{"name": "phone", "type": "phone"}, ...]
    fields: Mapped[list] = mapped_column(JSON, default=list)


class DataRecord(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "data_record"

    model_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("data_model.id", ondelete="CASCADE"), index=True
    )
    data: Mapped[dict] = mapped_column(JSON, default=dict)


class ImportJob(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "import_job"

    model_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("data_model.id", ondelete="CASCADE"), index=True
    )
    filename: Mapped[str | None] = mapped_column(String(255), default=None)
    file_url: Mapped[str] = mapped_column(String(1000))
    file_type: Mapped[str] = mapped_column(String(10))  # csv/json
    file_size: Mapped[int | None] = mapped_column(Integer, default=None)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    total_records: Mapped[int] = mapped_column(Integer, default=0)
    processed_records: Mapped[int] = mapped_column(Integer, default=0)
    invalid_records: Mapped[int] = mapped_column(Integer, default=0)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, default=None)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
