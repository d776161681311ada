"""Flask API for ingestion and diagnostics."""

from otel_sink.api.app import create_app, run_app
from otel_sink.api.health import health_bp, register_health_check
from otel_sink.api.ingest import ingest_bp
from otel_sink.api.middleware import MetricsMiddleware
from otel_sink.api.status import status_bp

__all__ = [
    "create_app",
    "run_app",
    "health_bp",
    "register_health_check",
    "ingest_bp",
    "status_bp",
    "MetricsMiddleware",
]
