"""Per-route request metrics and request logging.

Every request outside ``LOG_CONFIG__EXCLUDED_PATHS`` is counted and timed
with Prometheus collectors labelled by method, route template and status,
and logged on completion. Requests slower than
``LOG_CONFIG__SLOW_REQUEST_THRESHOLD_MS`` are logged as warnings.

The collectors live in a per-application ``CollectorRegistry`` which the
``/metrics`` endpoint renders in the Prometheus text format.
"""

import time

from loguru import logger
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match
from starlette.types import ASGIApp

from waypoint.core.config import LogConfig

UNMATCHED_ROUTE = "unmatched"

LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class HttpMetrics:
    """Request counter and latency histogram of one application.

    Args:
        registry: Registry the collectors are registered in. A fresh one is
            created when omitted, so several apps can live in one process.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests by route and status",
            labelnames=("method", "route", "status"),
            registry=self.registry,
        )
        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency by route",
            labelnames=("method", "route"),
            buckets=LATENCY_BUCKETS,
            registry=self.registry,
        )

    def observe(self, method: str, route: str, status: int, seconds: float) -> None:
        """Record one finished request."""
        self.requests_total.labels(method, route, str(status)).inc()
        self.request_duration.labels(method, route).observe(seconds)

    def render(self) -> bytes:
        """Current values in the Prometheus text format."""
        return generate_latest(self.registry)


def route_template(request: Request) -> str:
    """Path template of the matched route, to keep label cardinality low."""
    route = request.scope.get("route")
    if route is not None:
        return route.path

    for candidate in request.app.router.routes:
        match, _ = candidate.matches(request.scope)
        if match is Match.FULL:
            return candidate.path
    return UNMATCHED_ROUTE


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Times, counts and logs every request.

    Args:
        app: The ASGI application.
        metrics: Collectors to record into.
        log_config: Logging configuration (excluded paths, slow threshold).
    """

    def __init__(
        self, app: ASGIApp, *, metrics: HttpMetrics, log_config: LogConfig
    ) -> None:
        super().__init__(app)
        self.metrics = metrics
        self.log_config = log_config
        self.excluded_paths = set(log_config.excluded_paths)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request and record its outcome.

        Raises:
            Exception: Any exception raised by the application is re-raised
                after it is recorded.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = time.perf_counter() - start_time
            self.metrics.observe(request.method, route_template(request), 500, duration)
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration * 1000, 2),
                error_type=type(exc).__name__,
            )
            raise

        duration = time.perf_counter() - start_time
        duration_ms = round(duration * 1000, 2)
        self.metrics.observe(
            request.method, route_template(request), response.status_code, duration
        )
        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        if duration_ms > self.log_config.slow_request_threshold_ms:
            logger.warning(
                "Slow request detected",
                method=request.method,
                path=request.url.path,
                duration_ms=duration_ms,
                threshold_ms=self.log_config.slow_request_threshold_ms,
            )

        return response
