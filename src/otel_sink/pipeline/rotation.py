"""Size-based rotation of NDJSON output files.

Each file receiver owns one RotationPolicy and keeps one RotationState per
signal. Sizes are tracked from the bytes the receiver appends; the file is
never re-stat'ed on the write path.

Not thread-safe on its own: the owning receiver serializes access.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

import structlog

from .models import SignalType

log = structlog.get_logger()

NDJSON_SUFFIX = ".ndjson"
ERRORS_SUFFIX = ".errors.ndjson"


@dataclass
class RotationState:
    """Active output file for one signal."""

    current_path: Path
    tracked_size_bytes: int = 0


def format_file_name(signal: SignalType, timestamp: datetime, suffix: str) -> str:
    """Build ``{signal}.{yyyyMMdd_HHmmss_fff}{suffix}``."""
    stamp = timestamp.strftime("%Y%m%d_%H%M%S") + f"_{timestamp.microsecond // 1000:03d}"
    return f"{signal.value}.{stamp}{suffix}"


class RotationPolicy:
    """Decides which file the next write for a signal goes to."""

    def __init__(self, output_directory: Path, suffix: str, max_file_size_bytes: int):
        if max_file_size_bytes <= 0:
            raise ValueError("max_file_size_bytes must be greater than 0")
        self.output_directory = Path(output_directory)
        self.suffix = suffix
        self.max_file_size_bytes = max_file_size_bytes
        self._states: dict[SignalType, RotationState] = {}
        self._last_minted: dict[SignalType, datetime] = {}

    def state(self, signal: SignalType) -> RotationState | None:
        """Return the rotation state for a signal, if any write happened yet."""
        return self._states.get(signal)

    def target_path(self, signal: SignalType, captured_at: datetime) -> Path:
        """Return the path the next write should append to.

        Creates the state on first use and mints a new file once the tracked
        size has reached the threshold.
        """
        state = self._states.get(signal)
        if state is None:
            state = RotationState(current_path=self._mint_path(signal, captured_at))
            self._states[signal] = state
            log.debug("Opened telemetry file", path=str(state.current_path))
        elif state.tracked_size_bytes >= self.max_file_size_bytes:
            previous = state.current_path
            state.current_path = self._mint_path(signal, captured_at)
            state.tracked_size_bytes = 0
            log.info(
                "Rotated telemetry file",
                signal=signal.value,
                previous=str(previous),
                current=str(state.current_path),
            )
        return state.current_path

    def record_write(self, signal: SignalType, size_bytes: int) -> None:
        """Add appended bytes to the signal's tracked size."""
        self._states[signal].tracked_size_bytes += size_bytes

    def _mint_path(self, signal: SignalType, captured_at: datetime) -> Path:
        # Names only ever move forward per signal, so two rotations in the same
        # millisecond (or a clock stepping back) never share a file.
        timestamp = captured_at.replace(microsecond=captured_at.microsecond // 1000 * 1000)
        last = self._last_minted.get(signal)
        if last is not None and timestamp <= last:
            timestamp = last + timedelta(milliseconds=1)
        path = self.output_directory / format_file_name(signal, timestamp, self.suffix)
        while path.exists():
            timestamp += timedelta(milliseconds=1)
            path = self.output_directory / format_file_name(signal, timestamp, self.suffix)
        self._last_minted[signal] = timestamp
        return path
