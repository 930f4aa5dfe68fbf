from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.invcount.core.config import settings


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    def __init__(self) -> None:
        self.enabled = settings.METRICS_ENABLED
        self._registry = None
        self._http_requests_total = None
        self._http_request_duration_ms = None
        self._count_submissions_total = None
        self._ledger_adjustments_total = None
        self._session_transitions_total = None
        self._lock_timeouts_total = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route/method/status.",
            ["route", "method", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self._registry,
        )
        self._count_submissions_total = Counter(
            "count_submissions_total",
            "Count item submissions by kind and resulting item status.",
            ["kind", "status"],
            registry=self._registry,
        )
        self._ledger_adjustments_total = Counter(
            "ledger_adjustments_total",
            "Stock ledger rows rewritten by completed count sessions.",
            ["direction"],
            registry=self._registry,
        )
        self._session_transitions_total = Counter(
            "count_session_transitions_total",
            "Count session status transitions.",
            ["status"],
            registry=self._registry,
        )
        self._lock_timeouts_total = Counter(
            "ledger_lock_timeouts_total",
            "Requests rejected because the stock ledger was locked.",
            registry=self._registry,
        )

    def reset(self) -> None:
        if not self.enabled:
            return
        self._initialize_registry()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._http_requests_total.labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    def record_count_submission(self, *, kind: str, status: str) -> None:
        if not self.enabled:
            return
        self._count_submissions_total.labels(kind=kind, status=status).inc()

    def increment_ledger_adjustment(self, direction: str, count: int = 1) -> None:
        if not self.enabled:
            return
        self._ledger_adjustments_total.labels(direction=direction).inc(count)

    def record_session_transition(self, status: str) -> None:
        if not self.enabled:
            return
        self._session_transitions_total.labels(status=status).inc()

    def increment_lock_timeout(self) -> None:
        if not self.enabled:
            return
        self._lock_timeouts_total.inc()

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
