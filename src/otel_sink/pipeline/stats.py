"""Per-signal counters of accepted requests."""

import threading

from pydantic import BaseModel, ConfigDict

from .models import SignalType


class StatisticsSnapshot(BaseModel):
    """Read-only view of the ingestion counters."""

    model_config = ConfigDict(frozen=True)

    traces: int = 0
    logs: int = 0
    metrics: int = 0
    error_requests: int = 0
    dropped_requests: int = 0

    @property
    def total(self) -> int:
        return self.traces + self.logs + self.metrics


class TelemetryStatistics:
    """Monotonic counters, safe to bump from many threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._received: dict[SignalType, int] = dict.fromkeys(SignalType, 0)
        self._errors = 0
        self._dropped = 0

    def record_accepted(self, signal: SignalType, is_error: bool = False) -> None:
        with self._lock:
            self._received[signal] += 1
            if is_error:
                self._errors += 1

    def record_dropped(self) -> None:
        with self._lock:
            self._dropped += 1

    def received(self, signal: SignalType) -> int:
        with self._lock:
            return self._received[signal]

    def snapshot(self) -> StatisticsSnapshot:
        with self._lock:
            return StatisticsSnapshot(
                traces=self._received[SignalType.TRACES],
                logs=self._received[SignalType.LOGS],
                metrics=self._received[SignalType.METRICS],
                error_requests=self._errors,
                dropped_requests=self._dropped,
            )
