"""Format predicates and response checks reported through an assertion sink."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

from jsonschema import Draft7Validator

from .assertions import AssertionSink, expect_equal
from .models import TransportResponse

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE = re.compile(r"^\+?1?[-.\s]?\(?([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})$")
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

SECURITY_HEADERS = (
    "Strict-Transport-Security",
    "X-Content-Type-Options",
    "X-Frame-Options",
    "X-XSS-Protection",
)

SCHEMAS: dict[str, dict[str, Any]] = {
    "user": {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "name": {"type": "string"},
            "email": {"type": "string", "format": "email"},
            "createdAt": {"type": "string", "format": "date-time"},
        },
        "required": ["id", "name", "email"],
    },
    "product": {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "name": {"type": "string"},
            "price": {"type": "number", "minimum": 0},
            "category": {"type": "string"},
            "inStock": {"type": "boolean"},
        },
        "required": ["id", "name", "price"],
    },
    "api_response": {
        "type": "object",
        "properties": {
            "status": {"type": "string"},
            "message": {"type": "string"},
            "data": {"type": "object"},
            "timestamp": {"type": "string", "format": "date-time"},
        },
        "required": ["status"],
    },
}


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL.match(value))


def is_valid_phone(value: str) -> bool:
    """US phone numbers with optional +1 prefix and common separators."""
    return bool(_PHONE.match(value))


def is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def is_valid_date(value: str) -> bool:
    if not _DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def check_status_code(sink: AssertionSink, response: TransportResponse, expected: int) -> bool:
    return expect_equal(sink, f"Status code is {expected}", expected, response.status_code)


def check_response_time(sink: AssertionSink, response: TransportResponse, max_ms: float = 2000) -> bool:
    passed = response.elapsed_ms < max_ms
    message = None if passed else f"response took {response.elapsed_ms:.0f}ms"
    sink.record(f"Response time is below {max_ms:g}ms", passed, message)
    return passed


def check_headers(
    sink: AssertionSink,
    response: TransportResponse,
    required: Iterable[str],
    name: str = "Required headers are present",
) -> bool:
    missing = [header for header in required if response.header(header) is None]
    message = None if not missing else f"missing headers: {', '.join(missing)}"
    sink.record(name, not missing, message)
    return not missing


def check_security_headers(sink: AssertionSink, response: TransportResponse) -> bool:
    return check_headers(sink, response, SECURITY_HEADERS, name="Security headers are present")


def check_schema(
    sink: AssertionSink,
    schema: dict[str, Any],
    response: Optional[TransportResponse] = None,
    data: Any = None,
) -> bool:
    """Validate ``data`` (or the decoded response body) against a JSON schema."""

    if data is None and response is not None:
        try:
            data = response.json_body()
        except ValueError as exc:
            sink.record("Schema validation", False, f"Response body is not JSON: {exc}")
            return False
    validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
    errors = sorted(validator.iter_errors(data), key=lambda err: list(err.path))
    if errors:
        details = "; ".join(
            f"{'/'.join(str(part) for part in err.path) or '<root>'}: {err.message}" for err in errors
        )
        sink.record("Schema validation", False, details)
        return False
    sink.record("Schema validation", True)
    return True
