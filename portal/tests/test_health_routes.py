"""Test health and readiness routes."""

from __future__ import annotations

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "portal"}


@pytest.mark.asyncio
async def test_ready_reports_worker_state(client: AsyncClient):
    response = await client.get("/ready")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ready"
    # lifespan does not run under ASGITransport, so the worker was never started
    assert body["import_worker"] is False
