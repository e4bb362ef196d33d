"""Translation of Mspace gateway response text into normalized payloads.

The gateway answers with free text for errors and loosely shaped JSON for
successes. All phrase matching lives in :data:`KNOWN_PHRASES`; when upstream
wording changes, that table is the only thing to edit.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any

AUTH_FAILURE = "AUTH_FAILURE"
INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
NOT_AUTHORIZED = "NOT_AUTHORIZED"
TOP_UP_OK = "TOP_UP_OK"

# Lower-cased phrase -> code. Order matters: first match wins.
KNOWN_PHRASES: tuple[tuple[str, str], ...] = (
    ("successful top up", TOP_UP_OK),
    ("authentication failure", AUTH_FAILURE),
    ("insufficient balance", INSUFFICIENT_BALANCE),
    ("you are not authorized", NOT_AUTHORIZED),
)

ERROR_TEXT = {
    AUTH_FAILURE: "Authentication failure",
    INSUFFICIENT_BALANCE: "Insufficient Balance",
    NOT_AUTHORIZED: "Not Authorized",
}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class GatewayError(Exception):
    """An upstream failure that aborts the operation."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


def classify(text: str | None) -> str | None:
    """Return the code of the first known phrase found in ``text``."""
    haystack = (text or "").lower()
    for phrase, code in KNOWN_PHRASES:
        if phrase in haystack:
            return code
    return None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def interpret_balance(text: str) -> dict:
    if classify(text) == AUTH_FAILURE:
        return {
            "balance": 0,
            "status": "error",
            "error": "Authentication Failure - Invalid username or password",
        }
    match = _LEADING_INT.match(text or "")
    if match is None:
        return {"balance": 0, "status": "error", "error": f"Invalid balance response: {text}"}
    return {"balance": int(match.group(1)), "status": "success"}


def _send_failure(error: str) -> dict:
    return {"messageId": "", "responseTime": _now_iso(), "status": "failed", "error": error}


def interpret_send(text: str) -> dict:
    code = classify(text)
    if code in (AUTH_FAILURE, INSUFFICIENT_BALANCE):
        return _send_failure(ERROR_TEXT[code])
    try:
        payload = json.loads(text)
    except (TypeError, ValueError):
        return _send_failure(f"Parse error: {text}")
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        return _send_failure("Invalid response format")

    result = payload[0]
    ok = result.get("status") == "successful"
    data = {
        "messageId": str(result.get("messageId") or ""),
        "responseTime": result.get("responseTime") or _now_iso(),
        "status": "successful" if ok else "failed",
    }
    if not ok:
        data["error"] = "SMS sending failed"
    return data


def interpret_listing(text: str) -> list[Any]:
    """Sub-user and reseller-client listings; auth failures abort."""
    if classify(text) == AUTH_FAILURE:
        raise GatewayError("Authentication failure - Invalid credentials", AUTH_FAILURE)
    try:
        payload = json.loads(text)
    except (TypeError, ValueError):
        return []
    return payload if isinstance(payload, list) else []


def interpret_top_up(text: str) -> dict:
    code = classify(text)
    if code == TOP_UP_OK:
        return {"status": "success", "message": text}
    if code == AUTH_FAILURE:
        return {"status": "error", "message": "Authentication failure", "error": ERROR_TEXT[code]}
    if code == INSUFFICIENT_BALANCE:
        return {"status": "error", "message": "Insufficient Balance", "error": ERROR_TEXT[code]}
    if code == NOT_AUTHORIZED:
        return {
            "status": "error",
            "message": "Not authorized for this transaction",
            "error": ERROR_TEXT[code],
        }
    return {"status": "error", "message": text, "error": "Unknown error"}


def interpret_login(text: str) -> dict:
    if classify(text) == AUTH_FAILURE:
        return {"status": "error", "message": "Authentication failure", "error": ERROR_TEXT[AUTH_FAILURE]}
    return {"status": "success", "message": "Login successful"}


INTERPRETERS = {
    "balance": interpret_balance,
    "sendSMS": interpret_send,
    "subUsers": interpret_listing,
    "resellerClients": interpret_listing,
    "topUpReseller": interpret_top_up,
    "topUpSub": interpret_top_up,
    "login": interpret_login,
}


def interpret(operation: str, text: str) -> Any:
    try:
        handler = INTERPRETERS[operation]
    except KeyError:
        raise GatewayError(f"Unknown operation: {operation}") from None
    return handler(text)
