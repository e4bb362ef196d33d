"""Performance telemetry, cache maintenance and small key/value storage areas."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Response

from ..cache.context import PerformanceContext, get_performance
from ..cache.optimizer import clear_stale_entries
from ..models.user import UserProfile
from ..schemas.functions import CacheClearRequest, StaleClearRequest, StorageItem
from ..security.auth import get_current_user, require_admin

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/performance")
async def performance(
    admin: UserProfile = Depends(require_admin),
    perf: PerformanceContext = Depends(get_performance),
):
    return perf.snapshot()


@router.post("/performance/optimize")
async def optimize(
    admin: UserProfile = Depends(require_admin),
    perf: PerformanceContext = Depends(get_performance),
):
    removed = perf.optimize()
    return {"removed": removed, "entries": len(perf.cache)}


@router.post("/performance/clear")
async def clear(
    body: CacheClearRequest | None = None,
    admin: UserProfile = Depends(require_admin),
    perf: PerformanceContext = Depends(get_performance),
):
    body = body or CacheClearRequest()
    result = perf.clear_cache(
        preserve_auth=body.preserve_auth,
        preserve_user_data=body.preserve_user_data,
        preserve_recent=body.preserve_recent,
    )
    return asdict(result)


@router.post("/performance/clear-stale")
async def clear_stale(
    body: StaleClearRequest | None = None,
    admin: UserProfile = Depends(require_admin),
    perf: PerformanceContext = Depends(get_performance),
):
    body = body or StaleClearRequest()
    removed = clear_stale_entries(
        perf.cache,
        max_age=body.max_age_seconds,
        only_large=body.only_large,
        preserve_keys=body.preserve_keys,
    )
    return {"removed": removed, "entries": len(perf.cache)}


def _area(perf: PerformanceContext, area: str):
    try:
        return perf.storage(area)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown storage area: {area}") from None


@router.get("/storage/{area}")
async def storage_items(
    area: str,
    user: UserProfile = Depends(get_current_user),
    perf: PerformanceContext = Depends(get_performance),
):
    return _area(perf, area).items()


@router.put("/storage/{area}/{key}")
async def storage_set(
    area: str,
    key: str,
    body: StorageItem,
    user: UserProfile = Depends(get_current_user),
    perf: PerformanceContext = Depends(get_performance),
):
    _area(perf, area).set(key, body.value)
    return {"key": key, "value": body.value}


@router.delete("/storage/{area}/{key}", status_code=204)
async def storage_remove(
    area: str,
    key: str,
    user: UserProfile = Depends(get_current_user),
    perf: PerformanceContext = Depends(get_performance),
):
    if not _area(perf, area).remove(key):
        raise HTTPException(status_code=404, detail="Key not found")
    return Response(status_code=204)
