"""Test the performance and storage routes."""

from __future__ import annotations

import pytest
from httpx import AsyncClient


def _perf():
    from portal.app import app

    return app.state.performance


@pytest.mark.asyncio
async def test_performance_is_admin_only(client: AsyncClient, user_headers: dict):
    assert (await client.get("/api/system/performance", headers=user_headers)).status_code == 403
    assert (await client.post("/api/system/performance/clear", headers=user_headers)).status_code == 403


@pytest.mark.asyncio
async def test_performance_snapshot(client: AsyncClient, admin_headers: dict):
    perf = _perf()
    perf.cache.set(("catalog", "active"), [{"id": 1}])

    async def unused_loader():
        raise AssertionError("fresh entry should be served from the cache")

    cached = await perf.cache.fetch(("catalog", "active"), unused_loader, stale_after=60)
    assert cached == [{"id": 1}]

    response = await client.get("/api/system/performance", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["cache"]["entry_count"] == 1
    assert body["cache_hits"] == 1
    assert body["last_clear"] is None
    assert {"average_latency_ms", "slowest_routes", "routes", "requests"} <= body.keys()


@pytest.mark.asyncio
async def test_clear_preserves_auth_entries(client: AsyncClient, admin_headers: dict):
    perf = _perf()
    perf.cache.set(("auth", "session"), {"token": "t"})
    perf.cache.set(("analytics", "messaging"), {"total": 1})
    perf.local.set("user-prefs", {"theme": "dark"})
    perf.local.set("draft", "hello")

    response = await client.post(
        "/api/system/performance/clear",
        json={"preserveAuth": True, "preserveUserData": True},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["removed_entries"] == 1
    assert body["preserved_entries"] == 1
    assert body["storage_keys_removed"] == 1
    assert perf.cache.get(("auth", "session")).data == {"token": "t"}
    assert perf.cache.get(("analytics", "messaging")) is None
    assert perf.local.keys() == ["user-prefs"]


@pytest.mark.asyncio
async def test_clear_without_body_wipes_everything(client: AsyncClient, admin_headers: dict):
    perf = _perf()
    perf.cache.set(("auth", "session"), {"token": "t"})
    response = await client.post("/api/system/performance/clear", headers=admin_headers)
    assert response.json()["removed_entries"] == 1
    assert len(perf.cache) == 0
    assert perf.last_clear is not None


@pytest.mark.asyncio
async def test_clear_stale(client: AsyncClient, admin_headers: dict):
    perf = _perf()
    old = perf.cache.now() - 3600
    perf.cache.set(("analytics", "old"), {"n": 1}, updated_at=old)
    perf.cache.set(("catalog", "old"), {"n": 2}, updated_at=old)
    perf.cache.set(("analytics", "fresh"), {"n": 3})

    response = await client.post(
        "/api/system/performance/clear-stale",
        json={"max_age_seconds": 600, "preserve_keys": ["catalog"]},
        headers=admin_headers,
    )
    assert response.json() == {"removed": 1, "entries": 2}


@pytest.mark.asyncio
async def test_optimize(client: AsyncClient, admin_headers: dict):
    perf = _perf()
    perf.cache.set(("analytics", "ancient"), {"n": 1}, updated_at=perf.cache.now() - 7200)
    response = await client.post("/api/system/performance/optimize", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"removed": 1, "entries": 0}


@pytest.mark.asyncio
async def test_storage_routes(client: AsyncClient, user_headers: dict):
    put = await client.put(
        "/api/system/storage/session/wizard-step", json={"value": 3}, headers=user_headers
    )
    assert put.json() == {"key": "wizard-step", "value": 3}

    items = await client.get("/api/system/storage/session", headers=user_headers)
    assert items.json() == {"wizard-step": 3}

    assert (await client.delete(
        "/api/system/storage/session/wizard-step", headers=user_headers
    )).status_code == 204
    assert (await client.delete(
        "/api/system/storage/session/wizard-step", headers=user_headers
    )).status_code == 404
    assert (await client.get("/api/system/storage/cookies", headers=user_headers)).status_code == 404
