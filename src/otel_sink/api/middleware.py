"""WSGI middleware for Prometheus HTTP metrics."""

import time
from collections.abc import Callable, Iterable
from typing import Any

from prometheus_client import Counter, Histogram

HTTP_REQUESTS = Counter(
    "otel_sink_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "otel_sink_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

KNOWN_ENDPOINTS = frozenset(
    {
        "/v1/traces",
        "/v1/logs",
        "/v1/metrics",
        "/health",
        "/api/status",
        "/api/stats",
        "/api/files",
    }
)
UNKNOWN_ENDPOINT = "{other}"


class MetricsMiddleware:
    """WSGI middleware for recording HTTP request metrics.

    Records:
    - otel_sink_http_requests_total: Counter with method, endpoint, status labels
    - otel_sink_http_request_duration_seconds: Histogram with method, endpoint labels

    Any path outside KNOWN_ENDPOINTS is recorded as ``{other}`` so that
    scanners probing random URLs cannot blow up label cardinality.

    Usage:
        app.wsgi_app = MetricsMiddleware(app.wsgi_app)
    """

    def __init__(self, app: Callable[..., Iterable[bytes]]):
        self.app = app

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        start_time = time.time()
        method = environ.get("REQUEST_METHOD", "UNKNOWN")
        endpoint = self.normalize_path(environ.get("PATH_INFO", "/"))

        status_code = 500

        def custom_start_response(
            status: str, headers: list[tuple[str, str]], exc_info: Any = None
        ) -> Any:
            nonlocal status_code
            status_code = int(status.split()[0])
            return start_response(status, headers, exc_info)

        try:
            return self.app(environ, custom_start_response)
        finally:
            HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status=status_code).inc()
            HTTP_REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(
                time.time() - start_time
            )

    @staticmethod
    def normalize_path(path: str) -> str:
        path = path.rstrip("/") or "/"
        return path if path in KNOWN_ENDPOINTS else UNKNOWN_ENDPOINT
