"""
Prometheus metrics for the aggregator.
Wraps prometheus_client with a couple of latency helpers.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "msa_provider_requests_total",
    "Total provider HTTP requests",
    ["provider", "sport", "status"],
)
ADAPTER_FAILURES = Counter(
    "msa_adapter_failures_total",
    "Provider fetches converted to an empty result",
    ["sport", "reason"],
)
MALFORMED_RECORDS = Counter(
    "msa_malformed_records_total",
    "Provider records skipped because they could not be adapted",
    ["sport"],
)
CACHE_FALLBACKS = Counter(
    "msa_cache_fallbacks_total",
    "Sports served from the fallback snapshot",
    ["sport", "outcome"],
)
DETAIL_LOOKUPS = Counter(
    "msa_detail_lookups_total",
    "Per-match detail lookups by source",
    ["sport", "source"],
)
STALE_CYCLES = Counter(
    "msa_stale_cycles_total",
    "Aggregation cycles discarded because a newer cycle was already applied",
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "msa_provider_latency_seconds",
    "Provider request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
CYCLE_DURATION = Histogram(
    "msa_cycle_duration_seconds",
    "Duration of a full fan-out aggregation cycle",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
LIVE_MATCHES = Gauge(
    "msa_live_matches",
    "Number of live matches in the last applied cycle",
    ["sport"],
)
LAST_APPLIED_CYCLE = Gauge(
    "msa_last_applied_cycle",
    "Identifier of the most recently applied aggregation cycle",
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if labels:
            histogram.labels(**labels).observe(elapsed)
        else:
            histogram.observe(elapsed)


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
