"""Error classifier for decoded OTLP export requests."""

from collections.abc import Iterator, Mapping
from typing import Any

import structlog

from .models import SignalType, to_request_dict

log = structlog.get_logger()

# Severity numbers 17-20 are ERROR, 21-24 are FATAL
DEFAULT_SEVERITY_THRESHOLD = 17

# Span status code for ERROR, in both OTLP/JSON encodings
_STATUS_CODE_ERROR = 2
_STATUS_CODE_ERROR_NAME = "STATUS_CODE_ERROR"

EXCEPTION_EVENT_NAME = "exception"

EXCEPTION_ATTRIBUTE_KEYS = frozenset(
    {
        "exception.type",
        "exception.message",
        "exception.stacktrace",
    }
)

# Enum-name encoding of SeverityNumber, as produced by protobuf JSON printers
_SEVERITY_NAMES: dict[str, int] = {
    f"SEVERITY_NUMBER_{level}{suffix}": base + offset
    for level, base in (
        ("TRACE", 1),
        ("DEBUG", 5),
        ("INFO", 9),
        ("WARN", 13),
        ("ERROR", 17),
        ("FATAL", 21),
    )
    for offset, suffix in enumerate(("", "2", "3", "4"))
}


def _children(node: Any, *keys: str) -> Iterator[Any]:
    """Yield items of the first list found under any of ``keys``.

    Both camelCase (OTLP/JSON) and snake_case (proto field names) spellings
    are accepted. Missing, null and non-list values yield nothing.
    """
    if not isinstance(node, Mapping):
        return
    for key in keys:
        value = node.get(key)
        if isinstance(value, list):
            yield from value
            return


def _spans(request: Any) -> Iterator[Mapping[str, Any]]:
    for resource_spans in _children(request, "resourceSpans", "resource_spans"):
        for scope_spans in _children(resource_spans, "scopeSpans", "scope_spans"):
            for span in _children(scope_spans, "spans"):
                if isinstance(span, Mapping):
                    yield span


def _log_records(request: Any) -> Iterator[Mapping[str, Any]]:
    for resource_logs in _children(request, "resourceLogs", "resource_logs"):
        for scope_logs in _children(resource_logs, "scopeLogs", "scope_logs"):
            for record in _children(scope_logs, "logRecords", "log_records"):
                if isinstance(record, Mapping):
                    yield record


def _is_error_status(status: Any) -> bool:
    if not isinstance(status, Mapping):
        return False
    code = status.get("code")
    if isinstance(code, str):
        return code == _STATUS_CODE_ERROR_NAME or code == str(_STATUS_CODE_ERROR)
    return code == _STATUS_CODE_ERROR and not isinstance(code, bool)


def _severity_number(record: Mapping[str, Any]) -> int | None:
    value = record.get("severityNumber", record.get("severity_number"))
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if value.isdigit():
            return int(value)
        return _SEVERITY_NAMES.get(value)
    return None


def contains_trace_errors(request: Any) -> bool:
    """Check for spans with ERROR status or an "exception" event."""
    for span in _spans(request):
        if _is_error_status(span.get("status")):
            return True
        for event in _children(span, "events"):
            if isinstance(event, Mapping) and event.get("name") == EXCEPTION_EVENT_NAME:
                return True
    return False


def contains_log_errors(request: Any, severity_threshold: int = DEFAULT_SEVERITY_THRESHOLD) -> bool:
    """Check for records at ERROR severity or above, or with exception attributes."""
    for record in _log_records(request):
        severity = _severity_number(record)
        if severity is not None and severity >= severity_threshold:
            return True
        for attribute in _children(record, "attributes"):
            if isinstance(attribute, Mapping) and attribute.get("key") in EXCEPTION_ATTRIBUTE_KEYS:
                return True
    return False


def classify(
    signal: SignalType,
    request: Any,
    severity_threshold: int = DEFAULT_SEVERITY_THRESHOLD,
) -> bool:
    """Decide whether an export request carries error content.

    Never raises: malformed or partial requests classify as non-error so that
    classification can never block ingestion.

    Args:
        signal: Signal type the request was received as
        request: Decoded request, as an OTLP/JSON mapping or protobuf message
        severity_threshold: Lowest log severity number treated as an error

    Returns:
        True if the request contains error spans or error log records
    """
    try:
        if signal is SignalType.TRACES:
            return contains_trace_errors(to_request_dict(request))
        if signal is SignalType.LOGS:
            return contains_log_errors(to_request_dict(request), severity_threshold)
    except Exception as e:
        log.debug("Classification failed, treating as non-error", signal=str(signal), error=str(e))
    return False
