"""Authentication helpers: JWT handling, OAuth 2.0 token requests, API key, basic auth and sessions."""

from __future__ import annotations

import base64
import binascii
import json
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog

from .assertions import AssertionSink
from .errors import TransportError
from .http_executor import Transport
from .models import RequestTemplate, TransportResponse
from .store import KeyValueStore

LOGGER = structlog.get_logger("data_driven_runner")

AUTH_VARIABLES = (
    "authToken",
    "accessToken",
    "refreshToken",
    "tokenType",
    "tokenExpiry",
    "tokenTimestamp",
)
REFRESH_MARGIN = timedelta(minutes=5)
SESSION_COOKIE_MARKERS = ("session", "jsessionid", "phpsessid")
_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")
_MISSING = object()


@dataclass
class OAuthConfig:
    client_id: str
    client_secret: str
    token_endpoint: str
    redirect_uri: Optional[str] = None
    authorization_code: Optional[str] = None


def get_nested_property(obj: Any, path: str) -> Any:
    """Resolve a dot path such as ``data.user.token``; ``None`` when absent."""

    current = obj
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key, _MISSING)
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
        if current is _MISSING:
            return None
    return current


def extract_and_store_jwt(
    response: TransportResponse,
    store: KeyValueStore,
    sink: AssertionSink,
    token_path: str = "token",
) -> Optional[str]:
    try:
        token = get_nested_property(response.json_body(), token_path)
    except ValueError:
        token = None
    if not isinstance(token, str) or not token:
        sink.record("Token extraction", False, f"No token found at '{token_path}'")
        return None
    store.set("authToken", token)
    store.set("tokenTimestamp", datetime.now(timezone.utc).isoformat())
    sink.record("Token extraction", True)
    LOGGER.info("jwt_stored", token_path=token_path)
    return token


def validate_jwt_structure(token: Optional[str], sink: AssertionSink) -> bool:
    parts = token.split(".") if token else []
    passed = len(parts) == 3 and all(_SEGMENT.match(part) for part in parts)
    message = None
    if not token:
        message = "token is missing"
    elif not passed:
        message = "token must be three non-empty base64url segments"
    sink.record("JWT token structure validation", passed, message)
    return passed


def decode_jwt_payload(token: Optional[str]) -> Optional[dict[str, Any]]:
    """Decode the payload segment without verifying the signature."""

    if not token:
        return None
    try:
        segment = token.split(".")[1]
        padded = segment + "=" * (-len(segment) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (IndexError, ValueError, binascii.Error) as exc:
        LOGGER.warning("jwt_decode_failed", error=str(exc))
        return None
    return payload if isinstance(payload, dict) else None


def is_jwt_expired(token: Optional[str], now: Optional[float] = None) -> bool:
    payload = decode_jwt_payload(token)
    if not payload or "exp" not in payload:
        return True
    try:
        expires_at = float(payload["exp"])
    except (TypeError, ValueError):
        return True
    current = time.time() if now is None else now
    return expires_at < int(current)


def generate_basic_auth(username: str, password: str) -> str:
    encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {encoded}"


def validate_api_key_auth(
    request: RequestTemplate,
    response: TransportResponse,
    sink: AssertionSink,
    header_name: str = "X-API-Key",
) -> bool:
    api_key = next((v for k, v in request.headers.items() if k.lower() == header_name.lower()), None)
    if not api_key:
        message = f"request carries no {header_name} header"
    else:
        message = _authenticated_failure(response)
    sink.record("API Key authentication", message is None, message)
    return message is None


def validate_basic_auth(response: TransportResponse, sink: AssertionSink) -> bool:
    message = _authenticated_failure(response)
    sink.record("Basic authentication successful", message is None, message)
    return message is None


def extract_session_cookies(response: TransportResponse, store: KeyValueStore, sink: AssertionSink) -> dict[str, str]:
    """Store session-like cookies as ``cookie_<name>`` variables."""

    found = {
        name: value
        for name, value in response.cookies.items()
        if any(marker in name.lower() for marker in SESSION_COOKIE_MARKERS)
    }
    for name, value in found.items():
        store.set(f"cookie_{name}", value)
    sink.record("Session cookie extraction", bool(found), None if found else "no session cookies in response")
    LOGGER.info("session_cookies_stored", count=len(found))
    return found


def validate_active_session(response: TransportResponse, sink: AssertionSink) -> bool:
    message = None
    if response.status_code != 200:
        message = f"expected status 200, got {response.status_code}"
    else:
        marker = next((word for word in ("login", "unauthorized") if word in response.body), None)
        if marker is not None:
            message = f"response body mentions '{marker}'"
    sink.record("Active session validation", message is None, message)
    return message is None


def request_oauth_token(config: OAuthConfig, transport: Transport, store: KeyValueStore) -> bool:
    """Exchange an authorization code for tokens (authorization-code grant)."""

    body = {
        "grant_type": "authorization_code",
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "redirect_uri": config.redirect_uri or "",
        "code": config.authorization_code or "",
    }
    data = _token_request(config.token_endpoint, body, transport)
    if data is None:
        return False
    store.set("accessToken", str(data.get("access_token", "")))
    store.set("refreshToken", str(data.get("refresh_token", "")))
    store.set("tokenType", str(data.get("token_type") or "Bearer"))
    _store_expiry(data, store)
    return True


def refresh_oauth_token(config: OAuthConfig, transport: Transport, store: KeyValueStore) -> bool:
    refresh_token = store.get("refreshToken")
    if not refresh_token:
        LOGGER.error("refresh_token_missing")
        return False
    body = {
        "grant_type": "refresh_token",
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "refresh_token": refresh_token,
    }
    data = _token_request(config.token_endpoint, body, transport)
    if data is None:
        return False
    store.set("accessToken", str(data.get("access_token", "")))
    if data.get("refresh_token"):
        store.set("refreshToken", str(data["refresh_token"]))
    _store_expiry(data, store)
    return True


def needs_token_refresh(store: KeyValueStore, now: Optional[datetime] = None) -> bool:
    """True when the stored expiry is unknown or falls within five minutes."""

    raw = store.get("tokenExpiry")
    if not raw:
        return True
    try:
        expiry = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return True
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return expiry <= current + REFRESH_MARGIN


def clear_auth_data(store: KeyValueStore) -> None:
    for name in AUTH_VARIABLES:
        store.unset(name)
    LOGGER.info("auth_data_cleared")


def auth_status(store: KeyValueStore) -> dict[str, Any]:
    token = store.get("authToken") or store.get("accessToken")
    return {
        "token_present": bool(token),
        "token_expires": store.get("tokenExpiry") or "Unknown",
        "needs_refresh": needs_token_refresh(store),
    }


def _authenticated_failure(response: TransportResponse) -> Optional[str]:
    if response.status_code != 200:
        return f"expected status 200, got {response.status_code}"
    if response.header("WWW-Authenticate") is not None:
        return "response carries a WWW-Authenticate challenge"
    return None


def _token_request(endpoint: str, body: dict[str, str], transport: Transport) -> Optional[dict[str, Any]]:
    request = RequestTemplate(
        method="POST",
        url=endpoint,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        body=body,
    )
    try:
        response = transport.send(request)
    except TransportError as exc:
        LOGGER.error("token_request_failed", endpoint=endpoint, error=exc.reason)
        return None
    try:
        data = response.json_body()
    except ValueError:
        data = None
    if response.status_code >= 400 or not isinstance(data, dict):
        LOGGER.error("token_request_rejected", endpoint=endpoint, status=response.status_code)
        return None
    return data


def _store_expiry(data: dict[str, Any], store: KeyValueStore) -> None:
    expires_in = data.get("expires_in")
    if not expires_in:
        return
    try:
        expiry = datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))
    except (TypeError, ValueError, OverflowError):
        LOGGER.warning("token_expiry_unparseable", expires_in=expires_in)
        return
    store.set("tokenExpiry", expiry.isoformat())
