"""Data hub routes: uploads, data models, records and import jobs."""

from __future__ import annotations

import logging
import uuid
from typing import AsyncIterator

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models.user import UserProfile
from ..schemas.data_hub import (
    DataModelCreate,
    DataModelResponse,
    DataModelUpdate,
    ImportJobCreate,
    ImportJobResponse,
    RecordResponse,
    UploadResponse,
)
from ..security.auth import get_current_user
from ..services import import_svc
from ..uploads import UploadRejected, UploadStore, file_type_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/data-hub", tags=["data-hub"])

CHUNK_SIZE = 64 * 1024


def get_upload_store() -> UploadStore:
    return UploadStore()


async def _chunks(upload: UploadFile) -> AsyncIterator[bytes]:
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


@router.post("/uploads", response_model=UploadResponse, status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    user: UserProfile = Depends(get_current_user),
    store: UploadStore = Depends(get_upload_store),
):
    kind = file_type_for(file.filename, file.content_type)
    if kind is None or kind not in settings.allowed_upload_types_set:
        raise HTTPException(status_code=400, detail="Only CSV and JSON files are supported")
    try:
        stored = await store.write_stream(_chunks(file))
    except UploadRejected as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from None
    finally:
        await file.close()
    logger.info("Stored upload %s (%d bytes) for user %s", stored.sha256, stored.size_bytes, user.id)
    return UploadResponse(
        file_url=stored.url, filename=file.filename, file_type=kind, file_size=stored.size_bytes
    )


# --- models --------------------------------------------------------------


@router.get("/models", response_model=list[DataModelResponse])
async def model_list(user: UserProfile = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await import_svc.list_models(db, user.id)


@router.post("/models", response_model=DataModelResponse, status_code=201)
async def model_create(
    body: DataModelCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await import_svc.create_model(
            db, user.id,
            name=body.name,
            description=body.description,
            fields=[f.model_dump() for f in body.fields],
        )
    except import_svc.ImportJobError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None


@router.get("/models/{model_id}", response_model=DataModelResponse)
async def model_detail(
    model_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    model = await import_svc.get_model(db, user.id, model_id)
    if not model:
        raise HTTPException(status_code=404, detail="Model not found")
    return model


@router.patch("/models/{model_id}", response_model=DataModelResponse)
async def model_update(
    model_id: uuid.UUID,
    body: DataModelUpdate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    try:
        model = await import_svc.update_model(db, user.id, model_id, **updates)
    except import_svc.ImportJobError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    if not model:
        raise HTTPException(status_code=404, detail="Model not found")
    return model


@router.delete("/models/{model_id}", status_code=204)
async def model_delete(
    model_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await import_svc.delete_model(db, user.id, model_id):
        raise HTTPException(status_code=404, detail="Model not found")
    return Response(status_code=204)


# --- records -------------------------------------------------------------


@router.get("/records")
async def record_list(
    model_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    page: int = 1,
    per_page: int = 50,
):
    if not await import_svc.get_model(db, user.id, model_id):
        raise HTTPException(status_code=404, detail="Model not found")
    page = max(1, page)
    per_page = min(max(1, per_page), 500)
    records, total = await import_svc.list_records(
        db, user.id, model_id, offset=(page - 1) * per_page, limit=per_page
    )
    return {
        "items": [RecordResponse.model_validate(r).model_dump(mode="json") for r in records],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.delete("/records/{record_id}", status_code=204)
async def record_delete(
    record_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await import_svc.delete_record(db, user.id, record_id):
        raise HTTPException(status_code=404, detail="Record not found")
    return Response(status_code=204)


# --- import jobs ---------------------------------------------------------


@router.post("/import-jobs", response_model=ImportJobResponse, status_code=201)
async def job_create(
    body: ImportJobCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await import_svc.create_job(db, user.id, **body.model_dump())
    except import_svc.ImportJobError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None


@router.get("/import-jobs", response_model=list[ImportJobResponse])
async def job_list(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    status: str | None = None,
):
    return await import_svc.list_jobs(db, user.id, status=status)


@router.get("/import-jobs/{job_id}", response_model=ImportJobResponse)
async def job_detail(
    job_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await import_svc.get_job(db, user.id, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Import job not found")
    return job


@router.post("/import-jobs/{job_id}/process", response_model=ImportJobResponse)
async def job_process(
    job_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: UploadStore = Depends(get_upload_store),
):
    """Run a pending (or retry a failed) job inline instead of waiting for the worker."""
    if not await import_svc.get_job(db, user.id, job_id):
        raise HTTPException(status_code=404, detail="Import job not found")
    try:
        return await import_svc.process_import_job(db, job_id, store=store)
    except import_svc.ImportJobError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
