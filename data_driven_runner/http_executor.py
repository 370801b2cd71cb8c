"""HTTP transport used to dispatch scenario requests."""

from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import urlencode
import json
import os
import time
from http import client, cookies
from urllib import error, request

from .errors import TransportError
from .models import RequestTemplate, TransportResponse

DEFAULT_BASE_URL = "http://127.0.0.1:8080"
DEFAULT_TIMEOUT = 10.0
BASE_URL_ENV = "RUNNER_BASE_URL"
TIMEOUT_ENV = "RUNNER_HTTP_TIMEOUT"


class Transport(Protocol):
    def send(self, req: RequestTemplate) -> TransportResponse: ...


class HttpTransport:
    """Sends requests with urllib; HTTP error statuses are returned, not raised."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        env_base = os.getenv(BASE_URL_ENV, DEFAULT_BASE_URL)
        self._base_url = (base_url or env_base).rstrip("/")
        env_timeout = os.getenv(TIMEOUT_ENV, str(DEFAULT_TIMEOUT))
        self._timeout = timeout or float(env_timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    def send(self, req: RequestTemplate) -> TransportResponse:
        method = req.method.upper()
        url = self._build_url(req.url)
        headers = {"Accept": "application/json"}
        headers.update({str(key): str(value) for key, value in req.headers.items()})
        body_bytes = self._encode_body(method, req.body, headers)
        return self._perform_request(method, url, headers, body_bytes)

    def _build_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        path = url if url.startswith("/") else f"/{url}"
        return f"{self._base_url}{path}"

    @staticmethod
    def _encode_body(method: str, body: Any, headers: dict[str, str]) -> bytes | None:
        if method in {"GET", "HEAD"} or body is None:
            return None
        content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), "")
        if isinstance(body, (dict, list)):
            if "x-www-form-urlencoded" in content_type and isinstance(body, dict):
                return urlencode(body).encode("utf-8")
            if not content_type:
                headers["Content-Type"] = "application/json"
            return json.dumps(body).encode("utf-8")
        if isinstance(body, bytes):
            return body
        return str(body).encode("utf-8")

    def _perform_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> TransportResponse:
        start = time.perf_counter()
        try:
            req = request.Request(url, data=body, headers=headers, method=method)
            with request.urlopen(req, timeout=self._timeout) as response:
                raw = response.read()
                status = response.getcode()
                response_headers = dict(response.headers.items())
                set_cookies = response.headers.get_all("Set-Cookie") or []
        except error.HTTPError as exc:
            raw = exc.read()
            status = exc.code
            response_headers = dict(exc.headers.items()) if exc.headers else {}
            set_cookies = (exc.headers.get_all("Set-Cookie") if exc.headers else None) or []
        except (error.URLError, OSError) as exc:
            raise TransportError(method, url, str(getattr(exc, "reason", exc))) from exc
        except (client.HTTPException, ValueError) as exc:
            raise TransportError(method, url, str(exc) or type(exc).__name__) from exc
        elapsed_ms = (time.perf_counter() - start) * 1000
        return TransportResponse(
            status_code=status,
            body=raw.decode("utf-8", errors="replace"),
            headers=response_headers,
            elapsed_ms=round(elapsed_ms, 3),
            size=len(raw),
            cookies=_parse_cookies(set_cookies),
        )


def _parse_cookies(headers: list[str]) -> dict[str, str]:
    jar: cookies.SimpleCookie = cookies.SimpleCookie()
    for header in headers:
        try:
            jar.load(header)
        except cookies.CookieError:
            continue
    return {name: morsel.value for name, morsel in jar.items()}
