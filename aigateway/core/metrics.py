"""Prometheus metrics for the generation gateway."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("aigateway", "AI generation gateway info")
APP_INFO.info({"version": "1.0.0", "name": "aigateway"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

GENERATION_REQUESTS = Counter(
    "ai_generation_requests_total",
    "Generation calls by final outcome",
    ["outcome"],  # success | cache_hit | exhausted
)

PROVIDER_ATTEMPTS = Counter(
    "ai_provider_attempts_total",
    "Adapter invocations by provider and outcome",
    ["provider", "outcome"],  # outcome: success | <AdapterError.kind>
)

PROVIDER_LATENCY = Histogram(
    "ai_provider_latency_seconds",
    "Latency of successful adapter calls",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 20, 30, 60],
)

CACHE_LOOKUPS = Counter(
    "ai_cache_lookups_total",
    "Result cache lookups",
    ["result"],  # hit | miss
)

PROVIDER_REACHABLE = Gauge(
    "ai_provider_reachable",
    "Outcome of the most recent health probe (1 reachable, 0 not)",
    ["provider"],
)

PROVIDERS_ENABLED = Gauge(
    "ai_providers_enabled",
    "Enabled providers in the priority chain",
)


# --- Middleware ---


def _route_path(request: Request) -> str:
    """Route template for the label; unmatched paths share one series."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """HTTP request count and duration per route template."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        # The route is resolved inside call_next
        path = _route_path(request)
        REQUEST_COUNT.labels(method=request.method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=request.method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
