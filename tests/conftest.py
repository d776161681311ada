"""Shared fixtures for otel-sink tests."""

import logging
from datetime import UTC, datetime
from pathlib import Path

import pytest
import structlog

from otel_sink.config import SinkConfig
from otel_sink.pipeline import DiskSpaceGuard, SignalType, TelemetryItem
from otel_sink.pipeline.disk import DiskUsage

CAPTURED_AT = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo configure_logging calls made by CLI tests."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.getLogger().handlers.clear()


@pytest.fixture
def roomy_disk() -> DiskSpaceGuard:
    """Disk guard that always reports a terabyte free."""
    return DiskSpaceGuard(0, disk_usage=lambda path: DiskUsage(10**12, 0, 10**12))


@pytest.fixture
def config(tmp_path: Path) -> SinkConfig:
    """Config writing into a temp directory with no free space margin."""
    return SinkConfig(
        output_directory=tmp_path / "telemetry",
        min_free_space_bytes=0,
        shutdown_grace_seconds=2.0,
    )


@pytest.fixture
def make_item():
    """Factory for telemetry items."""

    def _make(
        signal: SignalType = SignalType.TRACES,
        line: str = '{"resourceSpans":[]}\n',
        is_error: bool = False,
        captured_at: datetime = CAPTURED_AT,
    ) -> TelemetryItem:
        return TelemetryItem(signal=signal, line=line, is_error=is_error, captured_at=captured_at)

    return _make


@pytest.fixture
def ok_trace_request() -> dict:
    return {
        "resourceSpans": [
            {
                "scopeSpans": [
                    {
                        "spans": [
                            {"name": "GET /users", "status": {"code": 1}},
                            {"name": "SELECT users", "status": {}},
                        ]
                    }
                ]
            }
        ]
    }


@pytest.fixture
def error_trace_request() -> dict:
    return {
        "resourceSpans": [
            {
                "scopeSpans": [
                    {
                        "spans": [
                            {"name": "GET /users", "status": {"code": 1}},
                            {"name": "POST /orders", "status": {"code": 2, "message": "boom"}},
                        ]
                    }
                ]
            }
        ]
    }


@pytest.fixture
def error_log_request() -> dict:
    return {
        "resourceLogs": [
            {
                "scopeLogs": [
                    {
                        "logRecords": [
                            {"severityNumber": 9, "body": {"stringValue": "started"}},
                            {"severityNumber": 17, "body": {"stringValue": "failed"}},
                        ]
                    }
                ]
            }
        ]
    }
