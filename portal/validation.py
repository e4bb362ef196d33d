"""Kenyan phone number, email and import-field validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable

EMPTY_NUMBER = "EMPTY_NUMBER"
INVALID_FORMAT = "INVALID_FORMAT"
INVALID_PREFIX = "INVALID_PREFIX"
INVALID_LENGTH = "INVALID_LENGTH"

ERROR_MESSAGES = {
    EMPTY_NUMBER: "Phone number is required",
    INVALID_FORMAT: "Invalid phone number format. Use +254XXXXXXXXX, 07XXXXXXXX or 01XXXXXXXX",
    INVALID_PREFIX: "Kenyan mobile numbers must start with 7 or 1 after the country code",
    INVALID_LENGTH: "Phone number must be 12 digits after the + sign (+254XXXXXXXXX)",
}

COUNTRY_CODE = "+254"
_SEPARATORS = re.compile(r"[\s\-()]")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class PhoneValidationResult:
    is_valid: bool
    formatted_number: str | None = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def failure(cls, code: str) -> "PhoneValidationResult":
        return cls(False, None, code, ERROR_MESSAGES[code])


def _normalize(cleaned: str) -> str | None:
    if cleaned.startswith("+254"):
        return cleaned
    if cleaned.startswith("254"):
        return "+" + cleaned
    if cleaned.startswith("07") or cleaned.startswith("01"):
        return COUNTRY_CODE + cleaned[1:]
    if len(cleaned) == 9 and cleaned[0] in "71":
        return COUNTRY_CODE + cleaned
    return None


def validate_phone(raw: str | None) -> PhoneValidationResult:
    """Validate a Kenyan mobile number and return it in ``+2547XXXXXXXX`` form.

    Whitespace, dashes and parentheses are ignored. Local (``07...``/``01...``),
    bare (``7...``), and international (``254...``/``+254...``) spellings are
    accepted; anything else reports one of the module's error codes.
    """
    cleaned = _SEPARATORS.sub("", raw or "")
    if not cleaned:
        return PhoneValidationResult.failure(EMPTY_NUMBER)

    formatted = _normalize(cleaned)
    if formatted is None:
        return PhoneValidationResult.failure(INVALID_FORMAT)
    if len(formatted) != len(COUNTRY_CODE) + 9:
        return PhoneValidationResult.failure(INVALID_LENGTH)

    subscriber = formatted[len(COUNTRY_CODE):]
    if not subscriber.isdigit():
        return PhoneValidationResult.failure(INVALID_FORMAT)
    if subscriber[0] not in "71":
        return PhoneValidationResult.failure(INVALID_PREFIX)

    return PhoneValidationResult(True, formatted)


def is_valid_phone(raw: str | None) -> bool:
    return validate_phone(raw).is_valid


def format_phone(raw: str | None) -> str | None:
    """Return the normalized number or None when invalid."""
    return validate_phone(raw).formatted_number


def validate_phones(numbers: Iterable[str]) -> dict[str, PhoneValidationResult]:
    return {number: validate_phone(number) for number in numbers}


def valid_phone_numbers(numbers: Iterable[str]) -> list[str]:
    """Normalized, de-duplicated valid numbers in input order."""
    seen: list[str] = []
    for number in numbers:
        formatted = format_phone(number)
        if formatted and formatted not in seen:
            seen.append(formatted)
    return seen


def validate_email(raw: str | None) -> tuple[bool, str | None]:
    """Email is optional: empty passes, otherwise a basic shape check."""
    value = (raw or "").strip()
    if not value:
        return True, None
    if not _EMAIL_RE.match(value):
        return False, "Invalid email format"
    return True, None


class FieldValidationError(ValueError):
    """Raised when an imported value does not match its declared field type."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


def _coerce_number(value: Any) -> int | float:
    if isinstance(value, bool):
        raise ValueError("not a number")
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip().replace(",", "")
    number = float(text)
    return int(number) if number.is_integer() and "." not in text else number


def _coerce_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).isoformat()
    except ValueError:
        pass
    for fmt in ("%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValueError("not a date")


def coerce_field(name: str, value: Any, field_type: str) -> Any:
    """Convert one raw imported value to its declared type."""
    kind = (field_type or "string").strip().lower()
    if kind == "number":
        try:
            return _coerce_number(value)
        except (TypeError, ValueError):
            raise FieldValidationError(name, f"invalid number {value!r}") from None
    if kind == "email":
        text = str(value).strip()
        ok, error = validate_email(text)
        if not ok:
            raise FieldValidationError(name, error or "invalid email")
        return text
    if kind == "phone":
        result = validate_phone(str(value))
        if not result.is_valid:
            raise FieldValidationError(name, result.error_message or "invalid phone")
        return result.formatted_number
    if kind == "date":
        try:
            return _coerce_date(value)
        except ValueError:
            raise FieldValidationError(name, f"invalid date {value!r}") from None
    return value if isinstance(value, str) else str(value)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
