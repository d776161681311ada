"""Metrics server for exposing Prometheus endpoints."""

import threading
from collections.abc import Callable
from typing import Any
from wsgiref.simple_server import WSGIRequestHandler, make_server

import structlog
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

log = structlog.get_logger()

# Module-level state for idempotent server startup
_server_lock = threading.Lock()
_server_thread: threading.Thread | None = None


class _QuietHandler(WSGIRequestHandler):
    """WSGI handler that doesn't log every request."""

    def log_message(self, format: str, *args: object) -> None:
        pass  # Suppress access logs


StartResponse = Callable[[str, list[tuple[str, str]]], Any]


def make_metrics_app(
    is_healthy: Callable[[], bool] | None = None,
) -> Callable[[dict[str, Any], StartResponse], list[bytes]]:
    """Build the WSGI app serving /metrics and /health.

    Args:
        is_healthy: Health check; /health answers 503 when it returns False
    """

    def metrics_app(environ: dict[str, Any], start_response: StartResponse) -> list[bytes]:
        path = environ.get("PATH_INFO", "/")

        if path == "/metrics":
            output = generate_latest(REGISTRY)
            status = "200 OK"
            headers = [("Content-Type", CONTENT_TYPE_LATEST)]
        elif path == "/health":
            healthy = is_healthy() if is_healthy else True
            output = b"ok" if healthy else b"degraded"
            status = "200 OK" if healthy else "503 Service Unavailable"
            headers = [("Content-Type", "text/plain")]
        else:
            output = b"Not Found"
            status = "404 Not Found"
            headers = [("Content-Type", "text/plain")]

        start_response(status, headers)
        return [output]

    return metrics_app


def start_metrics_server(
    port: int = 9464,
    host: str = "0.0.0.0",
    is_healthy: Callable[[], bool] | None = None,
) -> threading.Thread:
    """Start a background thread serving Prometheus metrics.

    This function is idempotent. If called multiple times, it returns
    the existing running thread.

    Args:
        port: Port to listen on (default 9464, the Prometheus exporter port)
        host: Host to bind to (default 0.0.0.0)
        is_healthy: Health check backing the /health endpoint

    Returns:
        The daemon thread running the server
    """
    global _server_thread
    with _server_lock:
        if _server_thread is not None and _server_thread.is_alive():
            log.debug("Metrics server already running")
            return _server_thread

        server = make_server(host, port, make_metrics_app(is_healthy), handler_class=_QuietHandler)

        def serve_forever() -> None:
            try:
                log.info("Metrics server listening", host=host, port=port)
                server.serve_forever()
            except Exception:
                log.exception("Metrics server failed unexpectedly")

        thread = threading.Thread(target=serve_forever, name="metrics-server", daemon=True)
        thread.start()
        _server_thread = thread
        return thread
