"""Flask application factory for the sink's HTTP surface."""

from flask import Flask

from otel_sink.api.health import health_bp
from otel_sink.api.ingest import ingest_bp
from otel_sink.api.middleware import MetricsMiddleware
from otel_sink.api.status import status_bp
from otel_sink.pipeline import DiagnosticsCollector, TelemetryPipeline


def create_app(
    pipeline: TelemetryPipeline,
    diagnostics: DiagnosticsCollector,
    service_name: str = "otel-sink",
    *,
    enable_ingest: bool = True,
    enable_health: bool = True,
) -> Flask:
    """Create the Flask application around a running pipeline.

    Args:
        pipeline: Pipeline receiving export requests
        diagnostics: Read-only view for health and status endpoints
        service_name: Flask application name, reported by /health
        enable_ingest: Whether to register the /v1/{signal} endpoints
        enable_health: Whether to register /health

    Returns:
        Configured Flask application
    """
    app = Flask(service_name)
    app.extensions["otel_sink"] = {"pipeline": pipeline, "diagnostics": diagnostics}
    app.wsgi_app = MetricsMiddleware(app.wsgi_app)  # type: ignore[method-assign]

    if enable_ingest:
        app.register_blueprint(ingest_bp)

    if enable_health:
        app.register_blueprint(health_bp)

    app.register_blueprint(status_bp)

    return app


def run_app(app: Flask, host: str = "127.0.0.1", port: int = 4318) -> None:
    """Run the application with the threaded development server.

    Each request is handled on its own thread, so ``accept`` sees concurrent
    callers just as it would behind a production WSGI server.

    Args:
        app: Flask application
        host: Host to bind to
        port: Port to listen on (default 4318, the OTLP/HTTP port)
    """
    app.run(host=host, port=port, threaded=True)
