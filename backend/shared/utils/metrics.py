"""
Lightweight metrics collection for the Acta Verification services.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
GATEWAY_REQUESTS = Counter(
    "av_gateway_requests_total",
    "Total record gateway HTTP requests",
    ["operation", "status"],
)
APPROVAL_OUTCOMES = Counter(
    "av_approval_outcomes_total",
    "Acta approval attempts by outcome (ok or failure kind)",
    ["outcome"],
)
LIST_FETCH_FAILURES = Counter(
    "av_list_fetch_failures_total",
    "Failed pending-list fetches by view and failure kind",
    ["view", "kind"],
)

# ── Histograms ──────────────────────────────────────────────────────────
GATEWAY_LATENCY = Histogram(
    "av_gateway_latency_seconds",
    "Record gateway request latency in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
