"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("medilens", "MediLens application info")
APP_INFO.info({"version": "1.0.0", "name": "medilens"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60],
)

GEMINI_ATTEMPTS = Counter(
    "gemini_attempts_total",
    "Outbound generateContent attempts by outcome",
    ["outcome"],  # success | rate_limited | overloaded | network | remote_error | empty
)

GEMINI_BACKOFF_SECONDS = Histogram(
    "gemini_backoff_seconds",
    "Time spent waiting between generateContent attempts",
    buckets=[0.5, 1, 2, 4, 8, 16, 32],
)

NORMALIZER_OUTCOMES = Counter(
    "normalizer_outcomes_total",
    "How model output was turned into structured data",
    ["stage"],  # direct | repaired | span | span_repaired | failed
)


# --- Middleware ---


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = request.url.path

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
