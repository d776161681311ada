"""Prometheus metrics for the telemetry sink.

This module provides:
- Sink metrics (REQUESTS, RECEIVER_WRITES, HEALTH_DEGRADED, etc.)
- A metrics server that serves all registered metrics

Usage:
    from otel_sink.metrics import start_metrics_server

    # Start metrics server (call once at startup)
    start_metrics_server(port=9464, is_healthy=lambda: True)
"""

from otel_sink.metrics.server import make_metrics_app, start_metrics_server
from otel_sink.metrics.sink import (
    CONSECUTIVE_FAILURES,
    DROPPED_REQUESTS,
    ERROR_REQUESTS,
    HEALTH_DEGRADED,
    RECEIVER_WRITES,
    REQUESTS,
    SERVICE_INFO,
)

__all__ = [
    "make_metrics_app",
    "start_metrics_server",
    "REQUESTS",
    "ERROR_REQUESTS",
    "DROPPED_REQUESTS",
    "RECEIVER_WRITES",
    "HEALTH_DEGRADED",
    "CONSECUTIVE_FAILURES",
    "SERVICE_INFO",
]
