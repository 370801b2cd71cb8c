"""Test bootstrap and shared fixtures for data-driven-runner."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from data_driven_runner.assertions import AssertionCollector  # noqa: E402
from data_driven_runner.errors import TransportError  # noqa: E402
from data_driven_runner.models import RequestTemplate, Scenario, TransportResponse  # noqa: E402
from data_driven_runner.runner import ScenarioRunner  # noqa: E402
from data_driven_runner.store import InMemoryStore  # noqa: E402


class FakeTransport:
    """Replays canned responses; a handler may raise TransportError."""

    def __init__(self, handler: Callable[[RequestTemplate], TransportResponse] | None = None) -> None:
        self.requests: list[RequestTemplate] = []
        self.handler = handler or (lambda req: TransportResponse(status_code=200, body="{}", elapsed_ms=10))

    def send(self, req: RequestTemplate) -> TransportResponse:
        self.requests.append(req)
        return self.handler(req)


def failing_handler(req: RequestTemplate) -> TransportResponse:
    raise TransportError(req.method, req.url, "connection refused")


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def sink() -> AssertionCollector:
    return AssertionCollector()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def runner(store: InMemoryStore, transport: FakeTransport, sink: AssertionCollector) -> ScenarioRunner:
    return ScenarioRunner(store=store, transport=transport, sink=sink)


@pytest.fixture
def template() -> RequestTemplate:
    return RequestTemplate(method="POST", url="http://api.test/users", headers={"X-Test": "1"})


@pytest.fixture
def scenarios() -> list[Scenario]:
    return [
        Scenario(description="create alice", input={"name": "alice"}, expected_status=201),
        Scenario(description="create bob", input={"name": "bob"}, expected_status=201),
        Scenario(
            description="duplicate alice",
            input={"name": "alice"},
            expected_status=409,
            expected_response={"status": "conflict"},
        ),
    ]
