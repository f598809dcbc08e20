"""
Prometheus metric factories with idempotent registration.

Modules such as ``search_api.telemetry`` define their collectors at import
time; tests and reloads import them more than once, so every factory
returns the already-registered collector instead of raising
``Duplicated timeseries``.
"""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)


def _lookup(name: str):
    """Find a registered collector by its base name."""
    for collector in REGISTRY._names_to_collectors.values():
        if getattr(collector, "_name", None) == name:
            return collector
        if getattr(collector, "_original_name", None) == name:
            return collector
    return None


def _get_or_create(metric_cls, name, documentation, **kwargs):
    try:
        return metric_cls(name, documentation, **kwargs)
    except ValueError:
        existing = _lookup(name)
        if existing is None:
            raise
        return existing


def create_counter(name: str, documentation: str, labelnames: list[str] = None) -> Counter:
    return _get_or_create(Counter, name, documentation, labelnames=labelnames or [])


def create_gauge(name: str, documentation: str, labelnames: list[str] = None) -> Gauge:
    return _get_or_create(Gauge, name, documentation, labelnames=labelnames or [])


def create_histogram(
    name: str,
    documentation: str,
    buckets: list[float] = None,
    labelnames: list[str] = None,
) -> Histogram:
    kwargs = {"labelnames": labelnames or []}
    if buckets:
        kwargs["buckets"] = buckets
    return _get_or_create(Histogram, name, documentation, **kwargs)


def create_info(name: str, documentation: str) -> Info:
    return _get_or_create(Info, name, documentation)


def create_service_info(service_name: str, version: str, environment: str | None = None) -> Info:
    """
    Create and populate the ``<service>_info`` metadata metric.

    Args:
        service_name: Metric name prefix (e.g. ``"search_api"``).
        version: Service version string.
        environment: Deployment environment. Falls back to
            ``$ENVIRONMENT``, then ``"development"``.
    """
    info = create_info(service_name, "Service metadata")
    info.info({
        "version": version,
        "environment": environment or os.environ.get("ENVIRONMENT", "development"),
    })
    return info


def metrics_response():
    """Return ``(body, content_type)`` for a Prometheus scrape response."""
    return generate_latest(), CONTENT_TYPE_LATEST
