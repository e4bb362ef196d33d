"""Mspace SMS gateway client.

Usage:
    async with MspaceClient(MspaceCredentials("acme", api_key)) as mspace:
        result = await mspace.call("balance")

v2 operations are JSON POSTs authenticated by an ``apikey`` header. Top-ups
still go through the legacy service where every parameter, the password
included, is a path segment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ..config import settings
from ..security.throttle import RequestTracker
from .responses import GatewayError, interpret

logger = logging.getLogger(__name__)

OPERATIONS = (
    "balance", "sendSMS", "subUsers", "resellerClients", "topUpReseller", "topUpSub", "login",
)

V2_PATHS = {
    "balance": "/smsapi/v2/balance",
    "login": "/smsapi/v2/balance",
    "sendSMS": "/smsapi/v2/sendtext",
    "subUsers": "/smsapi/v2/subusers",
    "resellerClients": "/smsapi/v2/resellerclients",
}


@dataclass(frozen=True)
class MspaceCredentials:
    username: str
    password: str
    sender_id: str | None = None

    def __repr__(self) -> str:
        return f"MspaceCredentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class GatewayRequest:
    method: str
    path: str
    body: dict | None = None


def _segment(name: str, value: Any) -> str:
    return f"{name}={quote(str(value), safe='')}"


def build_request(operation: str, creds: MspaceCredentials, **params) -> GatewayRequest:
    """Map an operation and its parameters to the upstream request."""
    if operation == "sendSMS":
        recipient, message = params.get("recipient"), params.get("message")
        if not recipient or not message:
            raise GatewayError("Recipient and message are required for SMS sending")
        sender = params.get("sender_id") or creds.sender_id or settings.mspace_default_sender_id
        return GatewayRequest("POST", V2_PATHS[operation], {
            "username": creds.username,
            "senderId": sender,
            "recipient": recipient,
            "message": message,
        })

    if operation in V2_PATHS:
        return GatewayRequest("POST", V2_PATHS[operation], {"username": creds.username})

    if operation == "topUpReseller":
        clientname, noofsms = params.get("clientname"), params.get("noofsms")
        if not clientname or not noofsms:
            raise GatewayError("Client name and number of SMS are required for reseller top-up")
        path = "/".join([
            "/mspaceservice/wr/sms/resellerclienttopup",
            _segment("username", creds.username),
            _segment("password", creds.password),
            _segment("clientname", clientname),
            _segment("noofsms", noofsms),
        ])
        return GatewayRequest("GET", path)

    if operation == "topUpSub":
        subaccname, noofsms = params.get("subaccname"), params.get("noofsms")
        if not subaccname or not noofsms:
            raise GatewayError("Sub account name and number of SMS are required for sub account top-up")
        path = "/".join([
            "/mspaceservice/wr/sms/subacctopup",
            _segment("username", creds.username),
            _segment("password", creds.password),
            _segment("subaccname", subaccname),
            _segment("noofsms", noofsms),
        ])
        return GatewayRequest("GET", path)

    raise GatewayError(f"Unknown operation: {operation}")


class MspaceClient:
    BASE_URL = "https://api.mspace.co.ke"

    def __init__(
        self,
        credentials: MspaceCredentials,
        *,
        tracker: RequestTracker | None = None,
        identifier: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        base_url: str | None = None,
    ):
        self.credentials = credentials
        self._tracker = tracker
        self._identifier = identifier or credentials.username
        self._transport = transport
        self._base_url = base_url or settings.mspace_base_url or self.BASE_URL
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "MspaceClient":
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=settings.mspace_timeout_seconds,
            transport=self._transport,
            headers={
                "apikey": self.credentials.password,
                "Accept": "application/json",
                "User-Agent": settings.mspace_user_agent,
            },
        )
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _send(self, request: GatewayRequest) -> str:
        if self._client is None:
            raise RuntimeError("MspaceClient must be used as an async context manager")
        if self._tracker is not None and not self._tracker.track(self._identifier):
            raise GatewayError("Too many requests. Please wait a minute and try again.", "THROTTLED")

        if request.method == "GET":
            resp = await self._client.get(request.path)
        else:
            resp = await self._client.post(request.path, json=request.body)

        text = resp.text
        logger.info("Mspace %s %s -> %s", request.method, request.path.split("/password=")[0], resp.status_code)
        if not resp.is_success:
            raise GatewayError(f"Mspace API error ({resp.status_code}): {text}", "UPSTREAM_HTTP")
        return text

    async def call(self, operation: str, **params) -> Any:
        """Run one operation and return its interpreted payload."""
        request = build_request(operation, self.credentials, **params)
        try:
            text = await self._send(request)
        except httpx.HTTPError as exc:
            raise GatewayError(f"Mspace API request failed: {exc}", "UPSTREAM_UNREACHABLE") from exc
        return interpret(operation, text)

    async def balance(self) -> dict:
        return await self.call("balance")

    async def send_sms(self, recipient: str, message: str, sender_id: str | None = None) -> dict:
        return await self.call("sendSMS", recipient=recipient, message=message, sender_id=sender_id)

    async def sub_users(self) -> list:
        return await self.call("subUsers")

    async def reseller_clients(self) -> list:
        return await self.call("resellerClients")

    async def top_up_reseller(self, clientname: str, noofsms: int) -> dict:
        return await self.call("topUpReseller", clientname=clientname, noofsms=noofsms)

    async def top_up_sub(self, subaccname: str, noofsms: int) -> dict:
        return await self.call("topUpSub", subaccname=subaccname, noofsms=noofsms)

    async def login(self) -> dict:
        return await self.call("login")
