"""Prometheus metrics for the telemetry sink.

All metrics use the 'otel_sink_' prefix.
"""

from prometheus_client import Counter, Gauge, Info

# Service info - set once at startup
SERVICE_INFO = Info(
    "otel_sink_service",
    "Service metadata",
)

# Ingestion metrics
REQUESTS = Counter(
    "otel_sink_requests_total",
    "Total export requests accepted",
    ["signal"],  # traces, logs, metrics
)

ERROR_REQUESTS = Counter(
    "otel_sink_error_requests_total",
    "Total export requests classified as containing errors",
    ["signal"],
)

DROPPED_REQUESTS = Counter(
    "otel_sink_dropped_requests_total",
    "Total export requests or deliveries dropped",
    ["reason"],  # serialization, queue_full
)

# Receiver metrics
RECEIVER_WRITES = Counter(
    "otel_sink_receiver_writes_total",
    "Total receiver write attempts",
    ["receiver", "status"],  # status: success, failure
)

# Health metrics
HEALTH_DEGRADED = Gauge(
    "otel_sink_health_degraded",
    "1 while the sink is degraded by consecutive write failures",
)

CONSECUTIVE_FAILURES = Gauge(
    "otel_sink_consecutive_failures",
    "Current run of consecutive receiver write failures",
)
