"""Durable NDJSON sink for OpenTelemetry export requests."""

__version__ = "0.1.0"
