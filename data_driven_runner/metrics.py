"""Per-request metrics kept in the environment store."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import structlog

from .models import RequestTemplate, TransportResponse
from .store import KeyValueStore

LOGGER = structlog.get_logger("data_driven_runner")

METRICS_KEY = "testMetrics"
METRICS_LIMIT = 100


class MetricsLog:
    """Capped log of request timings, status codes and sizes."""

    def __init__(self, store: KeyValueStore, limit: int = METRICS_LIMIT) -> None:
        self.store = store
        self.limit = limit

    def load(self) -> list[dict[str, Any]]:
        text = self.store.get(METRICS_KEY)
        if not text:
            return []
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            LOGGER.error("metrics_unreadable", error=str(exc))
            return []
        return payload if isinstance(payload, list) else []

    def collect(self, request: RequestTemplate, response: TransportResponse, **extra: Any) -> dict[str, Any]:
        metric = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "endpoint": request.url,
            "method": request.method.upper(),
            "responseTime": response.elapsed_ms,
            "status": response.status_code,
            "responseSize": response.size,
            **extra,
        }
        metrics = self.load()
        metrics.append(metric)
        if len(metrics) > self.limit:
            metrics = metrics[-self.limit:]
        self.store.set(METRICS_KEY, json.dumps(metrics))
        return metric

    def performance_summary(self) -> dict[str, Any]:
        metrics = self.load()
        if not metrics:
            return {"message": "No metrics collected yet"}

        times = [float(metric.get("responseTime") or 0) for metric in metrics]
        successes = [metric for metric in metrics if int(metric.get("status") or 0) < 400]
        return {
            "totalRequests": len(metrics),
            "avgResponseTime": int(sum(times) / len(times) + 0.5),
            "maxResponseTime": max(times),
            "minResponseTime": min(times),
            "successRate": f"{len(successes) / len(metrics) * 100:.2f}%",
        }

    def clear(self) -> None:
        self.store.unset(METRICS_KEY)
