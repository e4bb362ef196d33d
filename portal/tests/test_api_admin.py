"""Test admin, credential, service catalog and analytics routes."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from portal.models.user import UserProfile


@pytest.mark.asyncio
async def test_admin_routes_reject_clients(client: AsyncClient, user_headers: dict):
    assert (await client.get("/api/admin/users", headers=user_headers)).status_code == 403
    assert (await client.get("/api/analytics/admin", headers=user_headers)).status_code == 403


@pytest.mark.asyncio
async def test_admin_creates_user_with_credits(client: AsyncClient, admin_headers: dict):
    response = await client.post("/api/admin/users", json={
        "email": "reseller@example.com", "password": "reseller-pass",
        "role": "reseller", "initial_credits": 250,
    }, headers=admin_headers)
    assert response.status_code == 201
    created = response.json()
    assert created["role"] == "reseller"
    assert created["credits_remaining"] == 250

    dup = await client.post("/api/admin/users", json={
        "email": "reseller@example.com", "password": "reseller-pass",
    }, headers=admin_headers)
    assert dup.status_code == 409

    listing = await client.get(
        "/api/admin/users", params={"search": "reseller"}, headers=admin_headers
    )
    assert listing.json()["total"] == 1
    assert listing.json()["items"][0]["credits_remaining"] == 250


@pytest.mark.asyncio
async def test_admin_allocates_and_claws_back_credits(
    client: AsyncClient, user: UserProfile, admin_headers: dict
):
    url = f"/api/admin/users/{user.id}/credits"
    given = await client.post(url, json={"amount": 100}, headers=admin_headers)
    assert given.json() == {"user_id": str(user.id), "credits_remaining": 100}

    too_much = await client.post(url, json={"amount": -500}, headers=admin_headers)
    assert too_much.status_code == 400

    taken = await client.post(url, json={"amount": -40}, headers=admin_headers)
    assert taken.json()["credits_remaining"] == 60


@pytest.mark.asyncio
async def test_admin_updates_and_deletes_user(
    client: AsyncClient, user: UserProfile, admin: UserProfile, admin_headers: dict
):
    patched = await client.patch(
        f"/api/admin/users/{user.id}", json={"is_active": False, "company_name": "Acme"},
        headers=admin_headers,
    )
    assert patched.status_code == 200
    assert patched.json()["is_active"] is False
    assert patched.json()["company_name"] == "Acme"

    self_off = await client.patch(
        f"/api/admin/users/{admin.id}", json={"is_active": False}, headers=admin_headers
    )
    assert self_off.status_code == 400
    assert (await client.delete(f"/api/admin/users/{admin.id}", headers=admin_headers)).status_code == 400

    assert (await client.delete(f"/api/admin/users/{user.id}", headers=admin_headers)).status_code == 204
    assert (await client.delete(f"/api/admin/users/{user.id}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_deactivated_user_token_stops_working(
    client: AsyncClient, user: UserProfile, user_headers: dict, admin_headers: dict
):
    await client.patch(f"/api/admin/users/{user.id}", json={"is_active": False}, headers=admin_headers)
    assert (await client.get("/api/auth/me", headers=user_headers)).status_code == 401


@pytest.mark.asyncio
async def test_credentials_are_masked(client: AsyncClient, user_headers: dict):
    key = "abcd" + "x" * 120 + "wxyz"
    saved = await client.put("/api/credentials", json={
        "username": "acme", "api_key": key, "sender_id": "ACME",
    }, headers=user_headers)
    assert saved.status_code == 200
    assert saved.json()["api_key"] == "abcd********wxyz"

    listing = await client.get("/api/credentials", headers=user_headers)
    assert key not in listing.text
    assert listing.json()[0]["service_name"] == "mspace"

    assert (await client.delete("/api/credentials/mspace", headers=user_headers)).status_code == 204
    assert (await client.delete("/api/credentials/mspace", headers=user_headers)).status_code == 404


@pytest.mark.asyncio
async def test_service_activation_flow(
    client: AsyncClient, user_headers: dict, admin_headers: dict
):
    service = await client.post("/api/services/catalog", json={
        "service_name": "USSD", "service_type": "ussd", "monthly_fee": 5000,
    }, headers=admin_headers)
    assert service.status_code == 201
    service_id = service.json()["id"]

    forbidden = await client.post("/api/services/catalog", json={
        "service_name": "X", "service_type": "sms",
    }, headers=user_headers)
    assert forbidden.status_code == 403

    catalog = await client.get("/api/services/catalog", headers=user_headers)
    assert [s["service_name"] for s in catalog.json()] == ["USSD"]

    requested = await client.post(
        "/api/services/requests", json={"service_id": service_id}, headers=user_headers
    )
    assert requested.status_code == 201
    duplicate = await client.post(
        "/api/services/requests", json={"service_id": service_id}, headers=user_headers
    )
    assert duplicate.status_code == 409

    pending = await client.get("/api/services/admin/requests", headers=admin_headers)
    assert [r["id"] for r in pending.json()] == [requested.json()["id"]]

    approved = await client.post(
        f"/api/services/admin/requests/{requested.json()['id']}/approve", headers=admin_headers
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "active"

    overview = await client.get("/api/services/overview", headers=user_headers)
    assert overview.json()[0]["subscription_status"] == "active"

    cancelled = await client.post(
        f"/api/services/subscriptions/{approved.json()['id']}/cancel", headers=user_headers
    )
    assert cancelled.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_catalog_cache_is_invalidated_on_update(
    client: AsyncClient, user_headers: dict, admin_headers: dict
):
    created = await client.post("/api/services/catalog", json={
        "service_name": "SMS", "service_type": "sms",
    }, headers=admin_headers)
    await client.get("/api/services/catalog", headers=user_headers)

    await client.patch(
        f"/api/services/catalog/{created.json()['id']}", json={"is_active": False},
        headers=admin_headers,
    )
    catalog = await client.get("/api/services/catalog", headers=user_headers)
    assert catalog.json() == []


@pytest.mark.asyncio
async def test_reject_request_route(client: AsyncClient, user_headers: dict, admin_headers: dict):
    service = await client.post("/api/services/catalog", json={
        "service_name": "M-Pesa", "service_type": "mpesa",
    }, headers=admin_headers)
    requested = await client.post(
        "/api/services/requests", json={"service_id": service.json()["id"]}, headers=user_headers
    )
    rejected = await client.post(
        f"/api/services/admin/requests/{requested.json()['id']}/reject",
        json={"reason": "Missing paybill"}, headers=admin_headers,
    )
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["rejection_reason"] == "Missing paybill"


@pytest.mark.asyncio
async def test_messaging_analytics_is_cached(client: AsyncClient, user_headers: dict):
    from portal.app import app

    first = await client.get("/api/analytics/messaging", params={"days": 7}, headers=user_headers)
    assert first.status_code == 200
    assert first.json()["total_messages"] == 0
    await client.get("/api/analytics/messaging", params={"days": 7}, headers=user_headers)

    cache = app.state.performance.cache
    assert (cache.hits, cache.misses) == (1, 1)


@pytest.mark.asyncio
async def test_admin_overview(client: AsyncClient, user: UserProfile, admin_headers: dict):
    response = await client.get("/api/analytics/admin", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["users"]["total_users"] == 2
    assert response.json()["services"]["total_subscriptions"] == 0
