from __future__ import annotations

from data_driven_runner.metrics import METRICS_KEY, MetricsLog
from data_driven_runner.models import RequestTemplate, TransportResponse
from data_driven_runner.store import InMemoryStore


def test_collect_and_summarize() -> None:
    metrics = MetricsLog(InMemoryStore())
    request = RequestTemplate(method="get", url="http://api.test/items")

    first = metrics.collect(request, TransportResponse(status_code=200, elapsed_ms=100, size=10), testName="list")
    metrics.collect(request, TransportResponse(status_code=503, elapsed_ms=201, size=0))

    assert first["method"] == "GET"
    assert first["testName"] == "list"
    assert metrics.performance_summary() == {
        "totalRequests": 2,
        "avgResponseTime": 151,
        "maxResponseTime": 201.0,
        "minResponseTime": 100.0,
        "successRate": "50.00%",
    }


def test_metrics_are_capped_and_clearable() -> None:
    store = InMemoryStore()
    metrics = MetricsLog(store, limit=3)
    request = RequestTemplate(url="/ping")
    for elapsed in range(5):
        metrics.collect(request, TransportResponse(status_code=200, elapsed_ms=elapsed))

    assert [m["responseTime"] for m in metrics.load()] == [2, 3, 4]

    metrics.clear()
    assert store.get(METRICS_KEY) is None
    assert metrics.performance_summary() == {"message": "No metrics collected yet"}


def test_corrupted_metrics_read_as_empty() -> None:
    store = InMemoryStore({METRICS_KEY: "not json"})

    assert MetricsLog(store).load() == []
