"""Telemetry ingestion and persistence pipeline.

Classifies decoded OTLP export requests, serializes them to NDJSON and fans
them out to file and console receivers while tracking write health.
"""

from .classifier import classify, contains_log_errors, contains_trace_errors
from .diagnostics import DiagnosticsCollector, DiagnosticsSnapshot
from .disk import DiskSpaceGuard
from .files import (
    ClearResult,
    FileInfo,
    clear_telemetry_files,
    count_error_files,
    list_error_files,
    list_telemetry_files,
)
from .filters import AllSignalsFilter, ErrorsOnlyFilter, SignalFilter, TelemetryFilter
from .health import HealthMonitor, HealthSnapshot, HealthStatus
from .models import SignalType, TelemetryItem, serialize_request
from .orchestrator import TelemetryPipeline, build_pipeline
from .receivers import FileReceiver, StdoutReceiver, TelemetryReceiver
from .rotation import ERRORS_SUFFIX, NDJSON_SUFFIX, RotationPolicy, RotationState
from .stats import StatisticsSnapshot, TelemetryStatistics

__all__ = [
    # Orchestrator
    "TelemetryPipeline",
    "build_pipeline",
    # Model
    "SignalType",
    "TelemetryItem",
    "serialize_request",
    # Classifier
    "classify",
    "contains_trace_errors",
    "contains_log_errors",
    # Filters
    "TelemetryFilter",
    "AllSignalsFilter",
    "ErrorsOnlyFilter",
    "SignalFilter",
    # Receivers
    "TelemetryReceiver",
    "FileReceiver",
    "StdoutReceiver",
    "RotationPolicy",
    "RotationState",
    "DiskSpaceGuard",
    "NDJSON_SUFFIX",
    "ERRORS_SUFFIX",
    # Health and statistics
    "HealthMonitor",
    "HealthSnapshot",
    "HealthStatus",
    "TelemetryStatistics",
    "StatisticsSnapshot",
    # Diagnostics
    "DiagnosticsCollector",
    "DiagnosticsSnapshot",
    "FileInfo",
    "ClearResult",
    "list_telemetry_files",
    "list_error_files",
    "count_error_files",
    "clear_telemetry_files",
]
