"""Data hub service: models, records and file import jobs.

An import job walks ``pending -> processing -> completed | failed``.
Rows failing validation are skipped and counted in ``invalid_records``.
Valid rows are inserted in batches, each committed with the job's progress.
A failure while inserting a batch stops the job and marks it failed;
batches committed before it are kept.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.data_hub import DataModel, DataRecord, ImportJob
from ..uploads import UploadNotFound, UploadRejected, UploadStore, fetch_file
from ..validation import FieldValidationError, coerce_field, is_blank

logger = logging.getLogger(__name__)

FILE_TYPES = ("csv", "json")
FIELD_TYPES = ("string", "text", "number", "email", "phone", "date")


class ImportJobError(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- parsing -------------------------------------------------------------


def parse_csv(text: str) -> list[dict[str, str]]:
    """Rows of a CSV with a header line; needs at least one data row."""
    try:
        lines = [
            values for values in csv.reader(io.StringIO(text)) if any(v.strip() for v in values)
        ]
    except csv.Error as exc:
        raise ImportJobError(f"Invalid CSV: {exc}") from None
    if len(lines) < 2:
        raise ImportJobError("CSV file must have at least a header and one data row")
    headers = [h.strip() for h in lines[0]]
    rows = []
    for values in lines[1:]:
        rows.append({
            header: (values[i].strip() if i < len(values) else "")
            for i, header in enumerate(headers)
            if header
        })
    return rows


def parse_json(text: str) -> list[dict[str, Any]]:
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise ImportJobError(f"Invalid JSON: {exc}") from None
    except RecursionError:
        raise ImportJobError("Invalid JSON: nested too deeply") from None
    if isinstance(payload, dict):
        payload = payload.get("records", [payload])
    if not isinstance(payload, list):
        raise ImportJobError("JSON file must contain a list of objects")
    return [row for row in payload if isinstance(row, dict)]


def parse_rows(content: bytes, file_type: str) -> list[dict[str, Any]]:
    kind = (file_type or "").lower()
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ImportJobError("File is not UTF-8 text") from None
    if kind == "csv":
        return parse_csv(text)
    if kind == "json":
        return parse_json(text)
    raise ImportJobError(f"Unsupported file type: {file_type}")


def validate_row(row: dict[str, Any], fields: list[dict]) -> dict[str, Any]:
    """Coerce the model's fields out of one row.

    Blank values are skipped. Raises FieldValidationError on the first bad
    value; returns an empty dict if the row has none of the fields.
    """
    record: dict[str, Any] = {}
    for field in fields:
        name = field.get("name")
        if not name:
            continue
        value = row.get(name)
        if is_blank(value):
            continue
        record[name] = coerce_field(name, value, field.get("type", "string"))
    return record


def validate_rows(
    rows: list[dict[str, Any]], fields: list[dict]
) -> tuple[list[dict[str, Any]], int]:
    """Returns (valid records, invalid row count)."""
    valid: list[dict[str, Any]] = []
    invalid = 0
    for index, row in enumerate(rows, start=1):
        try:
            record = validate_row(row, fields)
        except FieldValidationError as exc:
            logger.warning("Import row %d rejected: %s", index, exc)
            invalid += 1
            continue
        if not record:
            invalid += 1
            continue
        valid.append(record)
    return valid, invalid


# --- data models and records ---------------------------------------------


def _check_fields(fields: list[dict]) -> list[dict]:
    checked = []
    for field in fields or []:
        name = str(field.get("name") or "").strip()
        type_ = str(field.get("type") or "string").strip().lower()
        if not name:
            raise ImportJobError("Every field needs a name")
        if type_ not in FIELD_TYPES:
            raise ImportJobError(f"Unknown field type: {type_}")
        checked.append({"name": name, "type": type_})
    return checked


async def list_models(db: AsyncSession, user_id: uuid.UUID) -> list[DataModel]:
    stmt = select(DataModel).where(DataModel.user_id == user_id).order_by(DataModel.name)
    return list((await db.execute(stmt)).scalars().all())


async def get_model(
    db: AsyncSession, user_id: uuid.UUID, model_id: uuid.UUID
) -> DataModel | None:
    stmt = select(DataModel).where(DataModel.id == model_id, DataModel.user_id == user_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def create_model(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    name: str,
    fields: list[dict],
    description: str | None = None,
) -> DataModel:
    model = DataModel(
        user_id=user_id, name=name, description=description, fields=_check_fields(fields)
    )
    db.add(model)
    await db.commit()
    await db.refresh(model)
    return model


async def update_model(
    db: AsyncSession, user_id: uuid.UUID, model_id: uuid.UUID, **kwargs
) -> DataModel | None:
    model = await get_model(db, user_id, model_id)
    if not model:
        return None
    if "fields" in kwargs:
        kwargs["fields"] = _check_fields(kwargs["fields"])
    for key, value in kwargs.items():
        setattr(model, key, value)
    await db.commit()
    await db.refresh(model)
    return model


async def delete_model(db: AsyncSession, user_id: uuid.UUID, model_id: uuid.UUID) -> bool:
    model = await get_model(db, user_id, model_id)
    if not model:
        return False
    await db.delete(model)
    await db.commit()
    return True


async def list_records(
    db: AsyncSession,
    user_id: uuid.UUID,
    model_id: uuid.UUID,
    *,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[DataRecord], int]:
    stmt = select(DataRecord).where(DataRecord.user_id == user_id, DataRecord.model_id == model_id)
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    stmt = stmt.order_by(DataRecord.created_at).offset(offset).limit(limit)
    return list((await db.execute(stmt)).scalars().all()), total


async def delete_record(db: AsyncSession, user_id: uuid.UUID, record_id: uuid.UUID) -> bool:
    record = await db.get(DataRecord, record_id)
    if not record or record.user_id != user_id:
        return False
    await db.delete(record)
    await db.commit()
    return True


# --- jobs ----------------------------------------------------------------


async def create_job(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    model_id: uuid.UUID,
    file_url: str,
    file_type: str,
    filename: str | None = None,
    file_size: int | None = None,
) -> ImportJob:
    kind = (file_type or "").lower()
    if kind not in FILE_TYPES:
        raise ImportJobError(f"Unsupported file type: {file_type}")
    if not await get_model(db, user_id, model_id):
        raise ImportJobError("Model not found")
    job = ImportJob(
        user_id=user_id,
        model_id=model_id,
        file_url=file_url,
        file_type=kind,
        filename=filename,
        file_size=file_size,
        status="pending",
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return job


async def list_jobs(
    db: AsyncSession, user_id: uuid.UUID, *, status: str | None = None
) -> list[ImportJob]:
    stmt = select(ImportJob).where(ImportJob.user_id == user_id)
    if status:
        stmt = stmt.where(ImportJob.status == status)
    return list((await db.execute(stmt.order_by(ImportJob.created_at.desc()))).scalars().all())


async def get_job(db: AsyncSession, user_id: uuid.UUID, job_id: uuid.UUID) -> ImportJob | None:
    stmt = select(ImportJob).where(ImportJob.id == job_id, ImportJob.user_id == user_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def claim_next_pending_job(db: AsyncSession) -> ImportJob | None:
    """Move the oldest pending job to processing and return it."""
    job_id = (await db.execute(
        select(ImportJob.id)
        .where(ImportJob.status == "pending")
        .order_by(ImportJob.created_at, ImportJob.id)
        .limit(1)
    )).scalar_one_or_none()
    if job_id is None:
        return None

    result = await db.execute(
        update(ImportJob)
        .where(ImportJob.id == job_id, ImportJob.status == "pending")
        .values(status="processing", started_at=_utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount != 1:
        return None
    return await db.get(ImportJob, job_id, populate_existing=True)


async def _insert_batch(db: AsyncSession, job: ImportJob, batch: list[dict[str, Any]]) -> None:
    db.add_all(
        DataRecord(user_id=job.user_id, model_id=job.model_id, data=record) for record in batch
    )
    await db.flush()


async def _mark_failed(db: AsyncSession, job: ImportJob, message: str) -> ImportJob:
    await db.rollback()
    await db.refresh(job)
    job.status = "failed"
    job.error_message = message
    job.completed_at = _utcnow()
    await db.commit()
    await db.refresh(job)
    logger.warning("Import job %s failed: %s", job.id, message)
    return job


async def process_import_job(
    db: AsyncSession,
    job_id: uuid.UUID,
    *,
    claimed: bool = False,
    store: UploadStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ImportJob:
    """Run one import job to completion or failure and return it.

    ``claimed`` is set by the worker, which has already moved the job to
    processing. Otherwise only pending or failed jobs may be (re)run.
    """
    job = await db.get(ImportJob, job_id, populate_existing=True)
    if job is None:
        raise ImportJobError("Job not found")
    allowed = ("processing",) if claimed else ("pending", "failed")
    if job.status not in allowed:
        raise ImportJobError(f"Job cannot be processed from status '{job.status}'")

    job.status = "processing"
    job.started_at = job.started_at if claimed and job.started_at else _utcnow()
    job.completed_at = None
    job.error_message = None
    job.total_records = job.processed_records = job.invalid_records = job.progress = 0
    await db.commit()

    try:
        return await _run_job(db, job, store=store, transport=transport)
    except Exception as exc:
        # never leave a job stuck in processing
        await _mark_failed(db, job, f"Unexpected error: {exc}")
        raise


async def _run_job(
    db: AsyncSession,
    job: ImportJob,
    *,
    store: UploadStore | None,
    transport: httpx.AsyncBaseTransport | None,
) -> ImportJob:
    try:
        model = await db.get(DataModel, job.model_id)
        if model is None:
            raise ImportJobError("Model not found")
        content = await fetch_file(job.file_url, store=store, transport=transport)
        rows = parse_rows(content, job.file_type)
        valid, invalid = validate_rows(rows, model.fields or [])
    except (ImportJobError, UploadNotFound, UploadRejected, httpx.HTTPError) as exc:
        return await _mark_failed(db, job, str(exc))

    job.total_records = len(rows)
    job.invalid_records = invalid
    await db.commit()

    batch_size = max(1, settings.import_batch_size)
    for start in range(0, len(valid), batch_size):
        batch = valid[start:start + batch_size]
        try:
            await _insert_batch(db, job, batch)
            job.processed_records += len(batch)
            job.progress = int(job.processed_records * 100 / len(valid))
            await db.commit()
        except SQLAlchemyError as exc:
            return await _mark_failed(db, job, f"Failed to insert batch: {exc}")

    job.status = "completed"
    job.progress = 100
    job.completed_at = _utcnow()
    await db.commit()
    await db.refresh(job)
    logger.info(
        "Import job %s completed: %d inserted, %d invalid of %d rows",
        job.id, job.processed_records, job.invalid_records, job.total_records,
    )
    return job
