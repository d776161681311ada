"""Pipeline data model: signal types, telemetry items, NDJSON serialization."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from otel_sink.errors import SerializationError


class SignalType(Enum):
    """OpenTelemetry signal types.

    Values are the lowercase names used in file names and URLs.
    """

    TRACES = "traces"
    LOGS = "logs"
    METRICS = "metrics"

    @classmethod
    def parse(cls, value: SignalType | str) -> SignalType:
        """Return the signal for an enum member or a case-insensitive name.

        Raises:
            ValueError: If the value names no known signal
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError(f"Unknown signal type: {value!r}")

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check a name against the signal allowlist."""
        return value.lower() in {s.value for s in cls}


@dataclass(frozen=True)
class TelemetryItem:
    """One accepted export request, ready for receivers."""

    signal: SignalType
    line: str  # serialized request, ends with exactly one "\n"
    is_error: bool
    captured_at: datetime  # UTC, millisecond resolution


def utc_now_ms() -> datetime:
    """Current UTC time truncated to milliseconds."""
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def to_request_dict(request: Any) -> Any:
    """Return the OTLP/JSON mapping form of a decoded request.

    Mappings pass through unchanged. Protobuf messages (anything carrying a
    ``DESCRIPTOR``) are converted with camelCase field names and integer enums,
    matching the OTLP/JSON encoding.
    """
    if isinstance(request, Mapping):
        return request
    if hasattr(request, "DESCRIPTOR"):
        from google.protobuf.json_format import MessageToDict

        return MessageToDict(request, use_integers_for_enums=True)
    return request


def serialize_request(request: Any) -> str:
    """Render a decoded request as a single NDJSON line.

    Raises:
        SerializationError: If the request is not a JSON object or holds values
            JSON cannot represent
    """
    payload = to_request_dict(request)
    if not isinstance(payload, Mapping):
        raise SerializationError(
            f"Export request must be a JSON object, got {type(payload).__name__}"
        )
    try:
        # Compact separators keep the document on one line. json escapes
        # control characters and non-ASCII inside string values.
        text = json.dumps(payload, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Export request is not JSON serializable: {e}") from e
    return text + "\n"
