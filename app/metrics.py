from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

EXPONENTIAL_SECONDS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
LABELS = ("method", "path", "status")


class RequestMetrics:
    """Request counter and latency histogram, registered on a private registry."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            LABELS,
            registry=self.registry,
        )
        self.requests_duration = Histogram(
            "http_requests_duration_seconds",
            "HTTP request latency in seconds",
            LABELS,
            buckets=EXPONENTIAL_SECONDS,
            registry=self.registry,
        )

    def observe(self, method: str, path: str, status: int, elapsed: float) -> None:
        labels = {"method": method, "path": path, "status": str(status)}
        self.requests_total.labels(**labels).inc()
        self.requests_duration.labels(**labels).observe(elapsed)

    def render(self) -> bytes:
        return generate_latest(self.registry)
