"""Test contact, group, campaign and billing API routes."""

from __future__ import annotations

import json

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.user import UserProfile
from portal.services import credential_svc, credit_svc


@pytest.mark.asyncio
async def test_contacts_require_auth(client: AsyncClient):
    assert (await client.get("/api/contacts")).status_code == 401


@pytest.mark.asyncio
async def test_contact_crud(client: AsyncClient, user_headers: dict):
    response = await client.post("/api/contacts", json={
        "first_name": "Amina", "phone": "0712345678", "tags": ["vip"],
    }, headers=user_headers)
    assert response.status_code == 201
    contact = response.json()
    assert contact["phone"] == "+254712345678"

    listing = await client.get("/api/contacts", params={"search": "amina"}, headers=user_headers)
    assert listing.json()["total"] == 1

    patched = await client.patch(
        f"/api/contacts/{contact['id']}", json={"last_name": "Otieno"}, headers=user_headers
    )
    assert patched.json()["last_name"] == "Otieno"

    bad = await client.patch(
        f"/api/contacts/{contact['id']}", json={"phone": "555"}, headers=user_headers
    )
    assert bad.status_code == 400

    deleted = await client.delete(f"/api/contacts/{contact['id']}", headers=user_headers)
    assert deleted.status_code == 204
    missing = await client.get(f"/api/contacts/{contact['id']}", headers=user_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_contact_create_rejects_bad_phone(client: AsyncClient, user_headers: dict):
    response = await client.post("/api/contacts", json={"phone": "123"}, headers=user_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_contacts_are_private(client: AsyncClient, user_headers: dict, admin_headers: dict):
    created = await client.post("/api/contacts", json={"first_name": "Mine"}, headers=user_headers)
    other = await client.get(f"/api/contacts/{created.json()['id']}", headers=admin_headers)
    assert other.status_code == 404


@pytest.mark.asyncio
async def test_bulk_create_and_validate(client: AsyncClient, user_headers: dict):
    response = await client.post("/api/contacts/bulk", json={"contacts": [
        {"first_name": "A", "phone": "0712345678"},
        {"first_name": "B", "phone": "0712345678"},
        {"first_name": "C", "phone": "bogus"},
    ]}, headers=user_headers)
    assert response.json() == {
        "created": 1, "duplicates": 1, "invalid": 1,
        "errors": [{"row": 3, "error": response.json()["errors"][0]["error"]}],
    }

    report = await client.post(
        "/api/contacts/validate", json={"validationType": "phone"}, headers=user_headers
    )
    assert report.json()["summary"] == {"total": 1, "valid": 1, "invalid": 0}


@pytest.mark.asyncio
async def test_group_membership_routes(client: AsyncClient, user_headers: dict):
    group = (await client.post("/api/groups", json={"name": "VIP"}, headers=user_headers)).json()
    contact = (await client.post(
        "/api/contacts", json={"first_name": "A", "phone": "0712345678"}, headers=user_headers
    )).json()

    added = await client.post(
        f"/api/groups/{group['id']}/members", json={"contact_ids": [contact["id"]]},
        headers=user_headers,
    )
    assert added.status_code == 200

    members = await client.get(f"/api/groups/{group['id']}/members", headers=user_headers)
    assert [m["id"] for m in members.json()] == [contact["id"]]

    groups = await client.get("/api/groups", headers=user_headers)
    assert groups.json()[0]["contact_count"] == 1

    removed = await client.delete(
        f"/api/groups/{group['id']}/members/{contact['id']}", headers=user_headers
    )
    assert removed.status_code == 204
    assert (await client.delete(f"/api/groups/{group['id']}", headers=user_headers)).status_code == 204


@pytest.mark.asyncio
async def test_billing_routes(client: AsyncClient, user_headers: dict):
    wallet = await client.get("/api/billing/credits", headers=user_headers)
    assert wallet.json() == {"credits_remaining": 0, "credits_purchased": 0}

    bought = await client.post(
        "/api/billing/credits/purchase", json={"amount": 50, "reference": "MPESA-123"},
        headers=user_headers,
    )
    assert bought.json()["credits_remaining"] == 50
    assert (await client.post(
        "/api/billing/credits/purchase", json={"amount": 0}, headers=user_headers
    )).status_code == 422

    txns = await client.get("/api/billing/transactions", headers=user_headers)
    assert [t["reference"] for t in txns.json()] == ["MPESA-123"]

    summary = await client.get("/api/billing/summary", headers=user_headers)
    assert summary.json()["credits_remaining"] == 50


@pytest.mark.asyncio
async def test_campaign_send_route(
    client: AsyncClient, db: AsyncSession, user: UserProfile, user_headers: dict
):
    from portal.app import app

    await credential_svc.upsert(db, user.id, "mspace", username="acme", api_key="k" * 128)
    await credit_svc.purchase(db, user.id, 5)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=json.dumps([{"messageId": "1", "status": "successful"}]))

    app.state.gateway_transport = httpx.MockTransport(handler)

    created = await client.post(
        "/api/campaigns", json={"name": "Promo", "message": "Hello"}, headers=user_headers
    )
    assert created.status_code == 201
    campaign_id = created.json()["id"]

    sent = await client.post(
        f"/api/campaigns/{campaign_id}/send", json={"recipients": ["0712345678"]},
        headers=user_headers,
    )
    assert sent.status_code == 200
    assert sent.json()["status"] == "completed"
    assert sent.json()["sent_count"] == 1

    again = await client.post(
        f"/api/campaigns/{campaign_id}/send", json={"recipients": ["0712345678"]},
        headers=user_headers,
    )
    assert again.status_code == 409

    messages = await client.get("/api/messages", headers=user_headers)
    assert messages.json()["total"] == 1
    assert messages.json()["items"][0]["recipient"] == "+254712345678"


@pytest.mark.asyncio
async def test_campaign_send_without_credits(client: AsyncClient, user_headers: dict):
    created = await client.post(
        "/api/campaigns", json={"name": "Broke", "message": "Hello"}, headers=user_headers
    )
    sent = await client.post(
        f"/api/campaigns/{created.json()['id']}/send", json={"recipients": ["0712345678"]},
        headers=user_headers,
    )
    assert sent.status_code == 402
