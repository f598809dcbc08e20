"""
Request-time dispatch between the search engine and the relational engine.

Routing order:
    rolled back or pinned ──▶ relational
    otherwise ──▶ search engine
                    └─ BackendUnavailableError ──▶ relational (this request only)

A request-time fallback never touches the failover controller; only the
probe loop and the manual operations change serving state.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from opentelemetry import trace
from opentelemetry.trace import SpanKind

from search_api import telemetry
from search_api.errors import BackendUnavailableError, SearchUnavailableError

logger = logging.getLogger("search_router")


@dataclass
class RoutedResult:
    """Backend payload plus which engine produced it."""

    payload: dict
    engine: str
    fallback_used: bool
    query_time_ms: int


class SearchRouter:
    """Pick the backend for each search request.

    Args:
        search_client: Primary engine client (``query(q, filters)``).
        relational_client: Fallback client with the same interface.
        is_rolled_back: Zero-arg callable returning the controller flag.
        pinned_to_fallback: Static configuration sending every request to
            the relational engine.
    """

    def __init__(
        self,
        search_client,
        relational_client,
        is_rolled_back: Callable[[], bool],
        pinned_to_fallback: bool = False,
    ):
        self.search_client = search_client
        self.relational_client = relational_client
        self.is_rolled_back = is_rolled_back
        self.pinned_to_fallback = pinned_to_fallback

    def route(self, query: str, filters: dict | None = None) -> RoutedResult:
        filters = filters or {}
        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span(
            "route search",
            kind=SpanKind.INTERNAL,
            attributes={"search.query_length": len(query)},
        ) as span:
            use_engine = not (self.pinned_to_fallback or self.is_rolled_back())
            span.set_attribute("search.primary_selected", use_engine)

            if not use_engine:
                return self._dispatch_fallback(query, filters, fallback_used=False)

            try:
                return self._dispatch(self.search_client, query, filters, fallback_used=False)
            except BackendUnavailableError as exc:
                logger.warning(
                    "Search engine unavailable, serving request from relational engine: %s",
                    exc,
                )
                telemetry.SEARCH_FALLBACKS.inc()
                span.set_attribute("search.fallback_used", True)
                return self._dispatch_fallback(query, filters, fallback_used=True)

    def _dispatch_fallback(self, query: str, filters: dict, fallback_used: bool) -> RoutedResult:
        try:
            return self._dispatch(self.relational_client, query, filters, fallback_used)
        except BackendUnavailableError as exc:
            logger.error("Relational engine unavailable: %s", exc)
            raise SearchUnavailableError("No search backend is available") from exc

    @staticmethod
    def _dispatch(client, query: str, filters: dict, fallback_used: bool) -> RoutedResult:
        start = time.perf_counter()
        payload = client.query(query, filters)
        elapsed = time.perf_counter() - start

        telemetry.SEARCH_REQUESTS.labels(engine=client.name).inc()
        telemetry.SEARCH_DURATION.labels(engine=client.name).observe(elapsed)

        return RoutedResult(
            payload=payload,
            engine=client.name,
            fallback_used=fallback_used,
            query_time_ms=int(elapsed * 1000),
        )
