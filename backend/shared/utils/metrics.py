"""
Prometheus metrics for the DiamondView aggregator.
Wraps prometheus_client with a latency helper.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "dv_provider_requests_total",
    "Total provider HTTP requests",
    ["provider", "status"],
)
ADAPTER_FAILURES = Counter(
    "dv_adapter_failures_total",
    "Adapter fetch and parse failures",
    ["provider", "kind"],
)
IDENTIFIER_DISCOVERIES = Counter(
    "dv_identifier_discoveries_total",
    "Endpoint identifier discovery attempts",
    ["provider", "outcome"],
)
STORE_REBUILDS = Counter(
    "dv_store_rebuilds_total",
    "Snapshot rebuilds performed",
)
RESOLUTIONS = Counter(
    "dv_resolutions_total",
    "Live overlay resolution outcomes",
    ["outcome"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "dv_provider_latency_seconds",
    "Provider request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
DISCOVERY_DURATION = Histogram(
    "dv_discovery_scan_seconds",
    "Duration of a full discovery scan",
    ["provider"],
    buckets=(0.5, 1, 2.5, 5, 10, 20, 40, 80),
)
REBUILD_DURATION = Histogram(
    "dv_rebuild_seconds",
    "Time to merge layers into a snapshot",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
)

# ── Gauges ──────────────────────────────────────────────────────────────
ACTIVE_ENDPOINTS = Gauge(
    "dv_active_endpoints",
    "Endpoints currently in the active set",
    ["provider"],
)
LAYER_RECORDS = Gauge(
    "dv_layer_records",
    "Records currently held per store layer source",
    ["layer", "provider"],
)
SNAPSHOT_GAMES = Gauge(
    "dv_snapshot_games",
    "Games in the current snapshot by status",
    ["status"],
)

# ── Info ────────────────────────────────────────────────────────────────
SERVICE_INFO = Info("dv_service", "Service build information")


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Iterator[None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        (histogram.labels(**labels) if labels else histogram).observe(elapsed)


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
