"""Test admin sessions, API keys, avatars and segment routes."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.user import UserProfile
from portal.routers.auth import get_avatar_store
from portal.security.auth import issue_token
from portal.services import auth_svc
from portal.uploads import UploadStore

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.mark.asyncio
async def test_admin_security_routes_reject_clients(client: AsyncClient, user_headers: dict):
    for path in ("/api/admin/sessions", "/api/admin/api-keys", "/api/admin/security-log",
                 "/api/admin/segments"):
        assert (await client.get(path, headers=user_headers)).status_code == 403
    assert (await client.delete("/api/auth/avatar", headers=user_headers)).status_code == 403


@pytest.mark.asyncio
async def test_session_routes(client: AsyncClient, admin_headers: dict):
    created = await client.post(
        "/api/admin/sessions",
        json={"location": {"city": "Nairobi"}},
        headers={**admin_headers, "User-Agent": "portal-tests", "X-Forwarded-For": "41.90.1.2, 10.0.0.1"},
    )
    assert created.status_code == 201
    token = created.json()["session_token"]
    session_id = created.json()["session_id"]

    listing = (await client.get("/api/admin/sessions", headers=admin_headers)).json()
    assert len(listing) == 1
    assert listing[0]["session_token"] == token[:8] + "..."
    assert listing[0]["ip_address"] == "41.90.1.2"
    assert listing[0]["user_agent"] == "portal-tests"
    assert listing[0]["location"] == {"city": "Nairobi"}

    touched = await client.post(f"/api/admin/sessions/{session_id}/activity", headers=admin_headers)
    assert touched.status_code == 200

    assert (await client.delete(f"/api/admin/sessions/{session_id}", headers=admin_headers)).status_code == 204
    gone = await client.post(f"/api/admin/sessions/{session_id}/activity", headers=admin_headers)
    assert gone.status_code == 404

    await client.post("/api/admin/sessions", headers=admin_headers)
    ended = await client.delete("/api/admin/sessions", headers=admin_headers)
    assert ended.json() == {"terminated_count": 1}

    log = (await client.get("/api/admin/security-log", headers=admin_headers)).json()
    assert log["active_sessions_count"] == 0
    assert {e["action"] for e in log["security_logs"]} == {
        "ADMIN_SESSION_CREATE", "ADMIN_SESSION_TERMINATE", "ADMIN_SESSION_TERMINATE_ALL",
    }


@pytest.mark.asyncio
async def test_api_key_authenticates_with_its_permissions(client: AsyncClient, admin_headers: dict):
    reader = await client.post(
        "/api/admin/api-keys", json={"name": "Reader", "permissions": ["read"]}, headers=admin_headers
    )
    assert reader.status_code == 201
    read_key = {"X-API-Key": reader.json()["api_key"]}

    me = await client.get("/api/auth/me", headers=read_key)
    assert me.status_code == 200
    assert me.json()["email"] == "admin@example.com"
    assert (await client.post(
        "/api/notifications", json={"title": "T", "message": "m"}, headers=read_key
    )).status_code == 401
    assert (await client.get("/api/admin/users", headers=read_key)).status_code == 403

    full = await client.post(
        "/api/admin/api-keys", json={"name": "Ops", "permissions": ["admin"]}, headers=admin_headers
    )
    assert (await client.get("/api/admin/users", headers={"X-API-Key": full.json()["api_key"]})).status_code == 200

    listing = await client.get("/api/admin/api-keys", headers=admin_headers)
    assert {k["key_name"] for k in listing.json()} == {"Reader", "Ops"}
    assert reader.json()["api_key"] not in listing.text


@pytest.mark.asyncio
async def test_api_key_update_regenerate_and_delete(client: AsyncClient, admin_headers: dict):
    bad = await client.post(
        "/api/admin/api-keys", json={"name": "X", "permissions": ["root"]}, headers=admin_headers
    )
    assert bad.status_code == 400

    created = (await client.post(
        "/api/admin/api-keys", json={"name": "K", "permissions": ["read"]}, headers=admin_headers
    )).json()
    key_url = f"/api/admin/api-keys/{created['id']}"

    patched = await client.patch(key_url, json={"permissions": ["read", "monitor"]}, headers=admin_headers)
    assert patched.json()["permissions"] == ["read", "monitor"]

    rotated = await client.post(f"{key_url}/regenerate", headers=admin_headers)
    assert rotated.json()["api_key"] != created["api_key"]
    assert (await client.get("/api/auth/me", headers={"X-API-Key": created["api_key"]})).status_code == 401
    assert (await client.get(
        "/api/auth/me", headers={"X-API-Key": rotated.json()["api_key"]}
    )).status_code == 200

    assert (await client.delete(key_url, headers=admin_headers)).status_code == 204
    assert (await client.delete(key_url, headers=admin_headers)).status_code == 404
    assert (await client.post(f"{key_url}/regenerate", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_avatar_upload_serve_and_delete(client: AsyncClient, admin_headers: dict, tmp_path):
    from portal.app import app

    store = UploadStore(tmp_path, max_bytes=1024)
    app.dependency_overrides[get_avatar_store] = lambda: store

    wrong_type = await client.post(
        "/api/auth/avatar", files={"avatar": ("me.txt", b"hello", "text/plain")}, headers=admin_headers
    )
    assert wrong_type.status_code == 400
    disguised = await client.post(
        "/api/auth/avatar", files={"avatar": ("me.png", b"not an image", "image/png")},
        headers=admin_headers,
    )
    assert disguised.status_code == 400
    too_big = await client.post(
        "/api/auth/avatar", files={"avatar": ("big.png", PNG + b"\x00" * 2048, "image/png")},
        headers=admin_headers,
    )
    assert too_big.status_code == 413

    uploaded = await client.post(
        "/api/auth/avatar", files={"avatar": ("me.png", PNG, "image/png")}, headers=admin_headers
    )
    assert uploaded.status_code == 200
    avatar_url = uploaded.json()["avatar_url"]
    assert avatar_url.startswith("/api/auth/avatar/")

    served = await client.get(avatar_url)
    assert served.status_code == 200
    assert served.headers["content-type"] == "image/png"
    assert served.content == PNG

    assert (await client.delete("/api/auth/avatar", headers=admin_headers)).status_code == 204
    assert (await client.get(avatar_url)).status_code == 404
    assert (await client.get("/api/auth/me", headers=admin_headers)).json()["avatar_url"] is None
    assert (await client.delete("/api/auth/avatar", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_shared_avatar_blob_survives_until_last_owner_clears_it(
    client: AsyncClient, db: AsyncSession, admin_headers: dict, tmp_path
):
    from portal.app import app

    store = UploadStore(tmp_path)
    app.dependency_overrides[get_avatar_store] = lambda: store
    other = await auth_svc.create_user(
        db, email="ops@example.com", password="ops-pass-1234", role="admin"
    )

    first = await client.post(
        "/api/auth/avatar", files={"avatar": ("a.png", PNG, "image/png")}, headers=admin_headers
    )
    avatar_url = first.json()["avatar_url"]

    other_headers = {"Authorization": f"Bearer {issue_token(other)}"}
    second = await client.post(
        "/api/auth/avatar", files={"avatar": ("b.png", PNG, "image/png")}, headers=other_headers
    )
    assert second.json()["avatar_url"] == avatar_url

    await client.delete("/api/auth/avatar", headers=admin_headers)
    assert (await client.get(avatar_url)).status_code == 200
    await client.delete("/api/auth/avatar", headers=other_headers)
    assert (await client.get(avatar_url)).status_code == 404


@pytest.mark.asyncio
async def test_segment_routes(client: AsyncClient, user: UserProfile, admin_headers: dict):
    created = await client.post("/api/admin/segments", json={
        "name": "Clients", "criteria": {"role": "user"},
    }, headers=admin_headers)
    assert created.status_code == 201
    segment = created.json()
    assert segment["criteria"] == {"role": "user"}
    assert segment["user_count"] == 0

    dup = await client.post("/api/admin/segments", json={"name": "Clients"}, headers=admin_headers)
    assert dup.status_code == 400

    refreshed = await client.post(f"/api/admin/segments/{segment['id']}/refresh", headers=admin_headers)
    assert refreshed.json()["user_count"] == 1
    members = await client.get(f"/api/admin/segments/{segment['id']}/members", headers=admin_headers)
    assert [m["email"] for m in members.json()] == [user.email]

    analysis = await client.post(
        "/api/admin/segments/analyze", json={"user_type": "admin"}, headers=admin_headers
    )
    assert analysis.json()["potential_users"] == 1
    bad = await client.post(
        "/api/admin/segments/analyze", json={"created_after": "soon"}, headers=admin_headers
    )
    assert bad.status_code == 400

    assert (await client.delete(f"/api/admin/segments/{segment['id']}", headers=admin_headers)).status_code == 204
    assert (await client.post(
        f"/api/admin/segments/{segment['id']}/refresh", headers=admin_headers
    )).status_code == 404
