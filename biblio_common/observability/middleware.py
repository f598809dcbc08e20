"""
Starlette middleware counting HTTP requests in a Prometheus Counter.

Usage::

    from biblio_common.observability import MetricsMiddleware, create_counter

    HTTP_REQUESTS = create_counter(
        "http_requests_total", "Total HTTP requests", ["method", "path", "status"]
    )
    app.add_middleware(MetricsMiddleware, counter=HTTP_REQUESTS, ignored_paths={"/metrics"})
"""

from prometheus_client import Counter
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class MetricsMiddleware(BaseHTTPMiddleware):
    """Increment ``counter`` once per request with method, path and status.

    The ``path`` label is the matched route template when one exists
    (``/search/works``), otherwise the raw URL path, so path parameters
    don't blow up label cardinality.

    Args:
        app: The ASGI application.
        counter: Counter with labels ``["method", "path", "status"]``.
        ignored_paths: Paths that are never counted (e.g. ``{"/metrics"}``).
    """

    def __init__(self, app, counter: Counter, ignored_paths: set[str] | None = None):
        super().__init__(app)
        self.counter = counter
        self.ignored_paths = ignored_paths or set()

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        if request.url.path in self.ignored_paths:
            return response

        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        self.counter.labels(
            method=request.method,
            path=path,
            status=response.status_code,
        ).inc()

        return response
