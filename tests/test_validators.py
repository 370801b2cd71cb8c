from __future__ import annotations

import json

import pytest

from data_driven_runner.assertions import AssertionCollector
from data_driven_runner.models import TransportResponse
from data_driven_runner.validators import (
    SCHEMAS,
    check_headers,
    check_response_time,
    check_schema,
    check_security_headers,
    check_status_code,
    is_valid_date,
    is_valid_email,
    is_valid_phone,
    is_valid_url,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("user@example.com", True), ("user@example", False), ("no at.com", False), ("a b@c.d", False)],
)
def test_email(value: str, expected: bool) -> None:
    assert is_valid_email(value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [("555-123-4567", True), ("+1 (555) 123-4567", True), ("5551234567", True), ("123-45", False)],
)
def test_phone(value: str, expected: bool) -> None:
    assert is_valid_phone(value) is expected


def test_url_and_date() -> None:
    assert is_valid_url("https://api.example.com/v1?x=1")
    assert not is_valid_url("api.example.com")
    assert is_valid_date("2024-02-29")
    assert not is_valid_date("2023-02-29")
    assert not is_valid_date("2024/01/01")


def test_response_checks_report_named_assertions() -> None:
    sink = AssertionCollector()
    response = TransportResponse(
        status_code=200,
        body="{}",
        headers={"content-type": "application/json", "X-Frame-Options": "DENY"},
        elapsed_ms=2500,
    )

    assert check_status_code(sink, response, 200)
    assert not check_response_time(sink, response, 1000)
    assert check_headers(sink, response, ["Content-Type"])
    assert not check_security_headers(sink, response)

    assert sink.names() == [
        "Status code is 200",
        "Response time is below 1000ms",
        "Required headers are present",
        "Security headers are present",
    ]
    assert "Strict-Transport-Security" in sink.failed[-1].message
    assert "X-Frame-Options" not in sink.failed[-1].message


def test_schema_validation_against_response_body() -> None:
    sink = AssertionCollector()
    good = TransportResponse(status_code=200, body=json.dumps({"id": 1, "name": "Chair", "price": 12.5}))
    bad = TransportResponse(status_code=200, body=json.dumps({"id": "x", "name": "Chair", "price": -1}))

    assert check_schema(sink, SCHEMAS["product"], response=good)
    assert not check_schema(sink, SCHEMAS["product"], response=bad)
    assert "id" in sink.failed[0].message
    assert "price" in sink.failed[0].message


def test_schema_validation_with_explicit_data_and_non_json_body() -> None:
    sink = AssertionCollector()

    assert not check_schema(sink, SCHEMAS["api_response"], data={"message": "missing status"})
    assert not check_schema(sink, SCHEMAS["user"], response=TransportResponse(status_code=200, body="<html>"))
    assert len(sink.failed) == 2

