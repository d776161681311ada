"""Health monitor driven by receiver write outcomes.

Two states only. The monitor turns DEGRADED when consecutive failures, counted
across all receivers, reach the configured threshold, and returns to HEALTHY on
the very next success.
"""

import threading
from collections import deque
from datetime import UTC, datetime
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict

log = structlog.get_logger()


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class HealthSnapshot(BaseModel):
    """Read-only view of the health state for diagnostics."""

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    consecutive_failures: int
    recent_errors: tuple[str, ...]
    degraded_transitions: int
    last_failure_at: datetime | None = None


class HealthMonitor:
    """Counts consecutive write failures and keeps recent error messages.

    Thread-safe: every read and mutation holds one lock.
    """

    def __init__(self, max_consecutive_failures: int = 10, max_error_history_size: int = 50):
        if max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be at least 1")
        if max_error_history_size < 1:
            raise ValueError("max_error_history_size must be at least 1")
        self.max_consecutive_failures = max_consecutive_failures
        self._lock = threading.Lock()
        self._status = HealthStatus.HEALTHY
        self._consecutive_failures = 0
        self._recent_errors: deque[str] = deque(maxlen=max_error_history_size)
        self._degraded_transitions = 0
        self._last_failure_at: datetime | None = None

    @property
    def status(self) -> HealthStatus:
        with self._lock:
            return self._status

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    @property
    def degraded_transitions(self) -> int:
        """Number of times the monitor has entered DEGRADED."""
        with self._lock:
            return self._degraded_transitions

    def recent_errors(self) -> list[str]:
        """Return recent failure messages, oldest first."""
        with self._lock:
            return list(self._recent_errors)

    def record_success(self) -> None:
        with self._lock:
            recovered = self._status is HealthStatus.DEGRADED
            self._consecutive_failures = 0
            self._status = HealthStatus.HEALTHY
        if recovered:
            log.info("Telemetry writes recovered, health restored")

    def record_failure(self, message: str) -> None:
        with self._lock:
            self._consecutive_failures += 1
            self._recent_errors.append(message)
            self._last_failure_at = datetime.now(UTC)
            degraded_now = (
                self._status is HealthStatus.HEALTHY
                and self._consecutive_failures >= self.max_consecutive_failures
            )
            if degraded_now:
                self._status = HealthStatus.DEGRADED
                self._degraded_transitions += 1
            failures = self._consecutive_failures
        if degraded_now:
            log.warning(
                "Health degraded after consecutive write failures",
                consecutive_failures=failures,
                last_error=message,
            )

    def reset(self) -> None:
        """Clear counters and history."""
        with self._lock:
            self._status = HealthStatus.HEALTHY
            self._consecutive_failures = 0
            self._recent_errors.clear()
            self._last_failure_at = None

    def snapshot(self) -> HealthSnapshot:
        with self._lock:
            return HealthSnapshot(
                status=self._status,
                consecutive_failures=self._consecutive_failures,
                recent_errors=tuple(self._recent_errors),
                degraded_transitions=self._degraded_transitions,
                last_failure_at=self._last_failure_at,
            )
