"""
Prometheus metrics for the fixture pipeline.
Module-level collectors; import and label them at the call site.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
UPSTREAM_REQUESTS = Counter(
    "sl_upstream_requests_total",
    "Upstream HTTP requests by endpoint, query kind and outcome",
    ["endpoint", "query", "status"],
)
UPSTREAM_RATE_LIMIT_RETRIES = Counter(
    "sl_upstream_rate_limit_retries_total",
    "Backoff retries triggered by upstream rate limiting",
    ["endpoint"],
)
UPSTREAM_FAILOVERS = Counter(
    "sl_upstream_failovers_total",
    "Provider cascade moved on to the next endpoint",
    ["from_endpoint"],
)
WINDOW_FETCH_FAILURES = Counter(
    "sl_window_fetch_failures_total",
    "Date-window fetches that failed inside a multi-window fetch",
    ["window"],
)
CACHE_LOOKUPS = Counter(
    "sl_cache_lookups_total",
    "Cache lookups by scope kind and outcome",
    ["scope_kind", "outcome"],
)
FIXTURES_FILTERED = Counter(
    "sl_fixtures_filtered_total",
    "Fixtures dropped at the provider boundary",
    ["reason"],
)
RECONCILER_TICKS = Counter(
    "sl_reconciler_ticks_total",
    "Live reconciler ticks by outcome",
    ["outcome"],
)
ELAPSED_SNAPS = Counter(
    "sl_elapsed_snaps_total",
    "Display elapsed anchors that snapped to the authoritative value",
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "sl_upstream_latency_seconds",
    "Upstream request latency in seconds",
    ["endpoint"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
MULTI_WINDOW_FETCH = Histogram(
    "sl_multi_window_fetch_seconds",
    "Wall time of one multi-window fetch",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
TRACKED_FIXTURES = Gauge(
    "sl_tracked_fixtures",
    "Fixtures currently tracked by the live reconciler",
)
LIVE_FIXTURES = Gauge(
    "sl_live_fixtures",
    "Fixtures reported live by the last reconciler tick",
)

# ── Info ────────────────────────────────────────────────────────────────
SERVICE_INFO = Info("sl_service", "Service build information")


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
