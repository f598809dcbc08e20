"""
Service-specific telemetry for search-api.

Failover and search metrics plus FastAPI instrumentation, built on the
shared ``biblio_common.observability`` package.
"""

import logging

from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from biblio_common.observability import (
    create_counter,
    create_gauge,
    create_histogram,
    MetricsMiddleware,
)

logger = logging.getLogger("telemetry")

# ── HTTP ──────────────────────────────────────────────────────────

HTTP_REQUESTS = create_counter(
    "http_requests_total",
    "Total HTTP requests by method and path",
    ["method", "path", "status"],
)

# ── Health probes ─────────────────────────────────────────────────

PROBES_TOTAL = create_counter(
    "search_engine_probes_total",
    "Search engine health probes by outcome",
    ["outcome"],
)

PROBE_DURATION = create_histogram(
    "search_engine_probe_duration_seconds",
    "Round-trip time of search engine health probes",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

PROBE_ERROR_RATE = create_gauge(
    "search_engine_probe_error_rate",
    "Failed / total probes over the sliding window",
)

PROBE_CONSECUTIVE_FAILURES = create_gauge(
    "search_engine_probe_consecutive_failures",
    "Trailing failed probes since the last success",
)

# ── Failover ──────────────────────────────────────────────────────

ROLLBACK_ACTIVE = create_gauge(
    "search_rollback_active",
    "1 while search traffic is rolled back to the relational engine",
)

ROLLBACKS_TOTAL = create_counter(
    "search_rollbacks_total",
    "Rollback transitions by trigger",
    ["trigger"],
)

RECOVERIES_TOTAL = create_counter(
    "search_recoveries_total",
    "Manual recovery attempts by outcome",
    ["outcome"],
)

FAILOVER_ALERTS_TOTAL = create_counter(
    "search_failover_alerts_total",
    "Failover alerts emitted by severity",
    ["severity"],
)

# ── Search traffic ────────────────────────────────────────────────

SEARCH_REQUESTS = create_counter(
    "search_requests_total",
    "Search requests by serving engine",
    ["engine"],
)

SEARCH_FALLBACKS = create_counter(
    "search_request_fallbacks_total",
    "Requests that fell back to the relational engine after a transient error",
)

SEARCH_DURATION = create_histogram(
    "search_backend_duration_seconds",
    "Time spent in a search backend per request",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
    labelnames=["engine"],
)

CACHE_LOOKUPS = create_counter(
    "search_cache_lookups_total",
    "Search response cache lookups by result",
    ["result"],
)


# ── Initialization ───────────────────────────────────────────────

def init(app):
    """Wire HTTP metrics and OpenTelemetry instrumentation into the app."""
    app.add_middleware(MetricsMiddleware, counter=HTTP_REQUESTS, ignored_paths={"/metrics"})

    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except Exception as e:
        logger.warning("FastAPI instrumentation failed: %s", e)

    logger.info("Service telemetry initialised")
