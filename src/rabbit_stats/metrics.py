"""Prometheus metrics for management API calls and a tiny HTTP server to expose them.

Call `start_metrics_server(port)` once in a process to expose /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server


MGMT_REQUEST_TOTAL = Counter(
    "rabbitmq_mgmt_request_total", "Total management API requests", ["method", "status"]
)
MGMT_REQUEST_LATENCY_SECONDS = Histogram(
    "rabbitmq_mgmt_request_latency_seconds",
    "Round-trip time of a single management API request",
    ["method"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 2, 5),
)


def observe_request(method: str, status: int | str, elapsed: float) -> None:
    MGMT_REQUEST_TOTAL.labels(method=method, status=str(status)).inc()
    MGMT_REQUEST_LATENCY_SECONDS.labels(method=method).observe(elapsed)


def start_metrics_server(port: int) -> None:
    start_http_server(port)
