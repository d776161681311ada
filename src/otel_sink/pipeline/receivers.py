"""Receivers: sinks that persist or display telemetry items.

A receiver's ``write`` returns True on success. Returning False or raising
counts as a failure; the pipeline reports either outcome to the health
monitor. Every receiver serializes its own writes, so concurrent callers never
interleave partial lines.
"""

import errno
import threading
from pathlib import Path
from typing import Protocol, TextIO

import click
import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from otel_sink.errors import ReceiverWriteError

from .disk import DiskSpaceGuard
from .models import SignalType, TelemetryItem
from .rotation import NDJSON_SUFFIX, RotationPolicy

log = structlog.get_logger()

DEFAULT_MAX_FILE_SIZE_BYTES = 100 * 1024 * 1024

_TRANSIENT_ERRNOS = {
    code
    for code in (
        getattr(errno, name, None)
        for name in ("EAGAIN", "EWOULDBLOCK", "EBUSY", "EINTR", "ETXTBSY", "EDEADLK")
    )
    if code is not None
}
# Windows sharing and lock violations
_TRANSIENT_WINERRORS = {32, 33}


class TelemetryReceiver(Protocol):
    """Sink for telemetry items."""

    name: str

    def write(self, item: TelemetryItem) -> bool: ...

    def close(self) -> None: ...


def is_transient_io_error(exc: BaseException) -> bool:
    """True for I/O errors worth retrying (brief locks, interrupted calls)."""
    if not isinstance(exc, OSError):
        return False
    if isinstance(exc, (BlockingIOError, InterruptedError)):
        return True
    if getattr(exc, "winerror", None) in _TRANSIENT_WINERRORS:
        return True
    return exc.errno in _TRANSIENT_ERRNOS


class FileReceiver:
    """Appends NDJSON lines to per-signal files with size-based rotation.

    One instance writes one kind of file (``.ndjson`` or ``.errors.ndjson``)
    for every signal, keeping independent rotation state per signal.
    """

    def __init__(
        self,
        output_directory: Path,
        suffix: str = NDJSON_SUFFIX,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
        disk_guard: DiskSpaceGuard | None = None,
        retry_attempts: int = 3,
        retry_base_delay: float = 0.05,
        abort_event: threading.Event | None = None,
        name: str | None = None,
    ):
        """Initialize the file receiver.

        Args:
            output_directory: Directory the files are written to (created on demand)
            suffix: File name suffix, including the leading dot
            max_file_size_bytes: Rotation threshold per file
            disk_guard: Free space check (default: 100 MB safety margin)
            retry_attempts: Total attempts for transient I/O errors
            retry_base_delay: First backoff delay in seconds, doubled per retry
            abort_event: When set, pending retries stop immediately
            name: Receiver name for logs and health messages
        """
        self.output_directory = Path(output_directory)
        self.suffix = suffix
        self.name = name or f"file{suffix}"
        self.rotation = RotationPolicy(self.output_directory, suffix, max_file_size_bytes)
        self.disk_guard = disk_guard or DiskSpaceGuard()
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self._abort = abort_event or threading.Event()
        self._lock = threading.Lock()
        self._closed = False

    def current_path(self, signal: SignalType) -> Path | None:
        """Return the file currently written for a signal, if any."""
        with self._lock:
            state = self.rotation.state(signal)
            return state.current_path if state else None

    def write(self, item: TelemetryItem) -> bool:
        data = item.line.encode("utf-8")

        with self._lock:
            if self._closed:
                raise ReceiverWriteError(self.name, "receiver is closed")

            path = self.rotation.target_path(item.signal, item.captured_at)

            if not self.disk_guard.has_space(path, len(data)):
                return False

            try:
                self.output_directory.mkdir(parents=True, exist_ok=True)
                self._append_with_retry(path, data)
            except OSError as e:
                raise ReceiverWriteError(
                    self.name, f"Failed to write {item.signal.value} to {path}: {e}"
                ) from e

            self.rotation.record_write(item.signal, len(data))

        log.debug("Wrote telemetry", receiver=self.name, path=str(path), size=len(data))
        return True

    def _append_with_retry(self, path: Path, data: bytes) -> None:
        for attempt in Retrying(
            stop=stop_after_attempt(self.retry_attempts) | stop_when_event_set(self._abort),
            wait=wait_exponential(multiplier=self.retry_base_delay, max=1.0),
            retry=retry_if_exception(is_transient_io_error),
            sleep=self._abort.wait,
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                with open(path, "ab") as f:
                    f.write(data)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        log.debug(
            "Retrying telemetry write",
            receiver=self.name,
            attempt=retry_state.attempt_number,
            error=str(error),
        )

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def __repr__(self) -> str:
        return f"FileReceiver({str(self.output_directory)!r}, suffix={self.suffix!r})"


# Terminal colors
ERROR_COLOR = "red"
SIGNAL_COLORS = {
    SignalType.TRACES: "cyan",
    SignalType.LOGS: "white",
    SignalType.METRICS: "green",
}


class StdoutReceiver:
    """Mirrors telemetry to the console as ``[timestamp] [signal] json``.

    Error items are always red; other items are colored by signal.
    """

    def __init__(self, stream: TextIO | None = None, color: bool | None = None, name: str = "stdout"):
        """Initialize the console receiver.

        Args:
            stream: Output stream (default: sys.stdout at write time)
            color: Force ANSI colors on or off (default: only on a terminal)
            name: Receiver name for logs and health messages
        """
        self.name = name
        self._stream = stream
        self._color = color
        self._lock = threading.Lock()

    @staticmethod
    def color_for(item: TelemetryItem) -> str:
        if item.is_error:
            return ERROR_COLOR
        return SIGNAL_COLORS[item.signal]

    @staticmethod
    def format(item: TelemetryItem) -> str:
        ts = item.captured_at
        timestamp = ts.strftime("%Y-%m-%dT%H:%M:%S") + f".{ts.microsecond // 1000:03d}"
        line = item.line.rstrip("\n")
        return f"[{timestamp}] [{item.signal.value}] {line}"

    def write(self, item: TelemetryItem) -> bool:
        text = click.style(self.format(item), fg=self.color_for(item))
        with self._lock:
            click.echo(text, file=self._stream, color=self._color)
        return True

    def close(self) -> None:
        pass
