"""Gateway proxy service: credential resolution, envelopes and message history."""

from __future__ import annotations

import json

import httpx
import pytest

from portal.gateway.responses import GatewayError
from portal.security.throttle import RequestTracker
from portal.services import credential_svc, gateway_svc, message_svc

API_KEY = "a" * 128


def _transport(responses: dict[str, str], seen: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(200, text=responses[request.url.path])

    return httpx.MockTransport(handler)


def test_envelope_shapes():
    ok = gateway_svc.envelope(True, operation="balance", data={"balance": 1})
    assert ok["success"] is True
    assert ok["data"] == {"balance": 1}
    assert "error" not in ok
    assert ok["timestamp"]

    failed = gateway_svc.envelope(False, operation="balance", error="nope")
    assert failed["error"] == "nope"
    assert "data" not in failed


@pytest.mark.asyncio
async def test_missing_credentials(db, user):
    with pytest.raises(gateway_svc.CredentialsNotFound):
        await gateway_svc.resolve_credentials(db, user.id)

    body = await gateway_svc.proxy(db, user.id, "balance")
    assert body["success"] is False
    assert "credentials not found" in body["error"]


@pytest.mark.asyncio
async def test_stored_key_must_have_expected_length(db, user):
    await credential_svc.upsert(db, user.id, "mspace", username="acme", api_key="short")
    with pytest.raises(GatewayError) as exc:
        await gateway_svc.resolve_credentials(db, user.id)
    assert exc.value.code == "CREDENTIALS_INVALID"
    assert "got 5" in str(exc.value)


@pytest.mark.asyncio
async def test_supplied_credentials_win(db, user):
    await credential_svc.upsert(db, user.id, "mspace", username="stored", api_key=API_KEY)
    creds = await gateway_svc.resolve_credentials(
        db, user.id, {"username": "inline", "password": "pw", "senderId": "SHOP"}
    )
    assert (creds.username, creds.password, creds.sender_id) == ("inline", "pw", "SHOP")

    stored = await gateway_svc.resolve_credentials(db, user.id, {"username": "inline"})
    assert stored.username == "stored"
    assert stored.password == API_KEY


@pytest.mark.asyncio
async def test_balance_through_stored_credentials(db, user):
    await credential_svc.upsert(db, user.id, "mspace", username="acme", api_key=API_KEY)
    seen: list[httpx.Request] = []
    body = await gateway_svc.proxy(
        db, user.id, "balance", transport=_transport({"/smsapi/v2/balance": "75"}, seen)
    )
    assert body == {
        "success": True,
        "operation": "balance",
        "data": {"balance": 75, "status": "success"},
        "timestamp": body["timestamp"],
    }
    assert seen[0].headers["apikey"] == API_KEY


@pytest.mark.asyncio
async def test_send_sms_records_message_history(db, user):
    await credential_svc.upsert(
        db, user.id, "mspace", username="acme", api_key=API_KEY, sender_id="ACME"
    )
    reply = json.dumps([{"messageId": "m-1", "status": "successful"}])
    seen: list[httpx.Request] = []
    data = await gateway_svc.call(
        db, user.id, "sendSMS",
        recipient="254712345678", message="Hello",
        transport=_transport({"/smsapi/v2/sendtext": reply}, seen),
    )
    assert data["status"] == "successful"
    assert json.loads(seen[0].content)["senderId"] == "ACME"

    messages, total = await message_svc.list_messages(db, user.id)
    assert total == 1
    assert messages[0].status == "sent"
    assert messages[0].provider_message_id == "m-1"
    assert messages[0].recipient == "254712345678"


@pytest.mark.asyncio
async def test_failed_send_is_recorded_as_failed(db, user):
    await credential_svc.upsert(db, user.id, "mspace", username="acme", api_key=API_KEY)
    data = await gateway_svc.call(
        db, user.id, "sendSMS",
        recipient="254712345678", message="Hello",
        transport=_transport({"/smsapi/v2/sendtext": "Insufficient balance"}),
    )
    assert data["status"] == "failed"
    messages, _ = await message_svc.list_messages(db, user.id, status="failed")
    assert messages[0].error_message == "Insufficient Balance"


@pytest.mark.asyncio
async def test_unknown_operation_is_an_error_envelope(db, user):
    body = await gateway_svc.proxy(db, user.id, "launchRocket")
    assert body["success"] is False
    assert body["error"] == "Unknown operation: launchRocket"


@pytest.mark.asyncio
async def test_throttled_user_gets_error_without_upstream_call(db, user):
    await credential_svc.upsert(db, user.id, "mspace", username="acme", api_key=API_KEY)
    tracker = RequestTracker(window_seconds=60, default_limit=500)
    for _ in range(500):
        tracker.track(str(user.id))

    seen: list[httpx.Request] = []
    body = await gateway_svc.proxy(
        db, user.id, "balance", tracker=tracker,
        transport=_transport({"/smsapi/v2/balance": "1"}, seen),
    )
    assert body["success"] is False
    assert "Too many requests" in body["error"]
    assert seen == []


@pytest.mark.asyncio
async def test_listing_auth_failure_aborts(db, user):
    await credential_svc.upsert(db, user.id, "mspace", username="acme", api_key=API_KEY)
    body = await gateway_svc.proxy(
        db, user.id, "subUsers",
        transport=_transport({"/smsapi/v2/subusers": "Authentication Failure"}),
    )
    assert body["success"] is False
    assert "Invalid credentials" in body["error"]


@pytest.mark.asyncio
async def test_credentials_are_masked_publicly(db, user):
    cred = await credential_svc.upsert(db, user.id, "mspace", username="acme", api_key=API_KEY)
    public = credential_svc.to_public(cred)
    assert public["api_key"] == "aaaa********aaaa"
    assert await credential_svc.deactivate(db, user.id, "mspace")
    assert await credential_svc.get_active(db, user.id, "mspace") is None
