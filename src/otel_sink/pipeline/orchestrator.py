"""TelemetryPipeline: fans accepted export requests out to receivers.

For every accepted request the pipeline:
1. Classifies it for error content
2. Serializes it to one NDJSON line
3. Builds a TelemetryItem and counts it
4. Queues it for every receiver whose filters all accept it

Each receiver has its own bounded queue and worker thread. A slow or failing
receiver therefore never stalls the others, and each receiver sees its items
strictly one at a time. Write outcomes feed the shared HealthMonitor; they
never propagate back to the caller of ``accept``.

Shutdown (``close``):
1. Stop accepting new items
2. Let workers drain their queues within the grace window
3. Set the abort event: retries stop and leftover items are discarded
4. Stop the workers and close the receivers
"""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from otel_sink.errors import ReceiverWriteError, SerializationError
from otel_sink.metrics.sink import (
    CONSECUTIVE_FAILURES,
    DROPPED_REQUESTS,
    ERROR_REQUESTS,
    HEALTH_DEGRADED,
    RECEIVER_WRITES,
    REQUESTS,
)

from .classifier import DEFAULT_SEVERITY_THRESHOLD, classify
from .disk import DiskSpaceGuard
from .filters import AllSignalsFilter, ErrorsOnlyFilter, TelemetryFilter, accepts_all
from .health import HealthMonitor, HealthStatus
from .models import SignalType, TelemetryItem, serialize_request, utc_now_ms
from .receivers import FileReceiver, StdoutReceiver, TelemetryReceiver
from .rotation import ERRORS_SUFFIX, NDJSON_SUFFIX
from .stats import TelemetryStatistics

if TYPE_CHECKING:
    from typing import TextIO

    from otel_sink.config import SinkConfig

log = structlog.get_logger()


@dataclass
class _Registration:
    receiver: TelemetryReceiver
    filters: tuple[TelemetryFilter, ...]
    pending: queue.Queue[TelemetryItem | None]
    thread: threading.Thread | None = field(default=None)


class TelemetryPipeline:
    """Accepts decoded export requests and dispatches them to receivers.

    Thread Safety:
        ``accept`` may be called from any number of threads. Registration
        list, statistics and health state are each lock-protected.

    Example:
        >>> pipeline = TelemetryPipeline()
        >>> pipeline.register_receiver(FileReceiver(Path("out")), AllSignalsFilter())
        >>> pipeline.accept(SignalType.TRACES, {"resourceSpans": []})
        >>> pipeline.close()
    """

    def __init__(
        self,
        health: HealthMonitor | None = None,
        statistics: TelemetryStatistics | None = None,
        severity_threshold: int = DEFAULT_SEVERITY_THRESHOLD,
        queue_size: int = 1000,
        shutdown_grace_seconds: float = 5.0,
    ):
        """Initialize the pipeline.

        Args:
            health: Health monitor fed with receiver outcomes
            statistics: Per-signal accepted request counters
            severity_threshold: Lowest log severity number classified as error
            queue_size: Capacity of each receiver's queue; a full queue drops the item
            shutdown_grace_seconds: Default drain window for ``close``
        """
        self.health = health or HealthMonitor()
        self.statistics = statistics or TelemetryStatistics()
        self.severity_threshold = severity_threshold
        self.queue_size = queue_size
        self.shutdown_grace_seconds = shutdown_grace_seconds

        # Set once the grace window is over; receivers stop retrying
        self.abort_event = threading.Event()
        self._shutdown_event = threading.Event()
        self._lock = threading.Lock()
        self._registrations: list[_Registration] = []
        self._closed = False

    @property
    def receivers(self) -> list[TelemetryReceiver]:
        with self._lock:
            return [r.receiver for r in self._registrations]

    def register_receiver(self, receiver: TelemetryReceiver, *filters: TelemetryFilter) -> None:
        """Attach a receiver. With no filters it receives every item."""
        registration = _Registration(
            receiver=receiver,
            filters=tuple(filters),
            pending=queue.Queue(maxsize=self.queue_size),
        )
        registration.thread = threading.Thread(
            target=self._worker_loop,
            args=(registration,),
            name=f"receiver-{receiver.name}",
            daemon=True,
        )
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot register receivers on a closed pipeline")
            self._registrations.append(registration)
            registration.thread.start()
        log.debug(
            "Registered receiver",
            receiver=receiver.name,
            filters=[repr(f) for f in registration.filters],
        )

    def accept(
        self,
        signal: SignalType | str,
        request: Any,
        cancel: threading.Event | None = None,
    ) -> None:
        """Accept one decoded export request.

        Never raises because of receiver failures; those only reach the health
        monitor. Unserializable requests are logged and dropped.

        Args:
            signal: Signal type the request was received as
            request: Decoded request (OTLP/JSON mapping or protobuf message)
            cancel: Caller cancellation; a set event skips dispatch

        Raises:
            ValueError: If ``signal`` is not a known signal type
        """
        signal = SignalType.parse(signal)

        if self._shutdown_event.is_set():
            log.debug("Pipeline shutting down, request ignored", signal=signal.value)
            return
        if cancel is not None and cancel.is_set():
            log.debug("Request cancelled before dispatch", signal=signal.value)
            return

        is_error = classify(signal, request, self.severity_threshold)

        try:
            line = serialize_request(request)
        except SerializationError as e:
            self.statistics.record_dropped()
            DROPPED_REQUESTS.labels(reason="serialization").inc()
            log.error("Dropping export request", signal=signal.value, error=str(e))
            return

        item = TelemetryItem(signal=signal, line=line, is_error=is_error, captured_at=utc_now_ms())

        # close() takes the same lock before queueing shutdown sentinels, so an
        # item is either queued ahead of them or never counted.
        with self._lock:
            if self._closed:
                log.debug("Pipeline shutting down, request ignored", signal=signal.value)
                return

            self.statistics.record_accepted(signal, is_error)
            REQUESTS.labels(signal=signal.value).inc()
            if is_error:
                ERROR_REQUESTS.labels(signal=signal.value).inc()

            for registration in self._registrations:
                try:
                    if accepts_all(registration.filters, item):
                        self._enqueue(registration, item)
                except Exception as e:
                    # A broken filter only affects its own receiver
                    self._report_failure(
                        registration.receiver, item, f"{registration.receiver.name}: {e}"
                    )

    def _enqueue(self, registration: _Registration, item: TelemetryItem) -> None:
        # Never wait on a full queue: one stalled receiver must not hold up the
        # others or the caller.
        try:
            registration.pending.put_nowait(item)
        except queue.Full:
            self.statistics.record_dropped()
            DROPPED_REQUESTS.labels(reason="queue_full").inc()
            self._report_failure(
                registration.receiver,
                item,
                f"{registration.receiver.name}: queue full, {item.signal.value} item dropped",
            )

    def _worker_loop(self, registration: _Registration) -> None:
        """Background thread: deliver queued items to one receiver."""
        receiver = registration.receiver
        discarded = 0

        while True:
            item = registration.pending.get()
            try:
                if item is None:  # Shutdown sentinel
                    break
                if self.abort_event.is_set():
                    discarded += 1
                    continue
                self._deliver(receiver, item)
            except Exception:
                log.exception("Receiver worker failed unexpectedly", receiver=receiver.name)
            finally:
                registration.pending.task_done()

        if discarded:
            log.warning(
                "Discarded pending telemetry after shutdown grace period",
                receiver=receiver.name,
                discarded=discarded,
            )

    def _deliver(self, receiver: TelemetryReceiver, item: TelemetryItem) -> None:
        try:
            ok = receiver.write(item) is not False
        except ReceiverWriteError as e:
            self._report_failure(receiver, item, str(e))
            return
        except Exception as e:
            self._report_failure(receiver, item, f"{receiver.name}: {e}")
            return

        if not ok:
            self._report_failure(receiver, item, f"{receiver.name}: write of {item.signal.value} rejected")
            return

        self.health.record_success()
        RECEIVER_WRITES.labels(receiver=receiver.name, status="success").inc()
        self._update_health_gauges()

    def _report_failure(self, receiver: TelemetryReceiver, item: TelemetryItem, error: str) -> None:
        self.health.record_failure(error)
        RECEIVER_WRITES.labels(receiver=receiver.name, status="failure").inc()
        self._update_health_gauges()
        log.warning(
            "Receiver write failed",
            receiver=receiver.name,
            signal=item.signal.value,
            error=error,
        )

    def _update_health_gauges(self) -> None:
        snapshot = self.health.snapshot()
        HEALTH_DEGRADED.set(1 if snapshot.status is HealthStatus.DEGRADED else 0)
        CONSECUTIVE_FAILURES.set(snapshot.consecutive_failures)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until every receiver queue has been processed.

        Returns:
            True if all queues drained, False if the timeout expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._lock:
            registrations = list(self._registrations)

        for registration in registrations:
            q = registration.pending
            with q.all_tasks_done:
                while q.unfinished_tasks:
                    if deadline is None:
                        q.all_tasks_done.wait()
                        continue
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                    q.all_tasks_done.wait(remaining)
        return True

    def close(self, grace_seconds: float | None = None) -> None:
        """Drain within the grace window, then stop workers and close receivers."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            registrations = list(self._registrations)

        self._shutdown_event.set()

        grace = self.shutdown_grace_seconds if grace_seconds is None else grace_seconds
        if not self.flush(timeout=grace):
            log.warning("Shutdown grace period expired with telemetry still queued", grace=grace)
        self.abort_event.set()

        for registration in registrations:
            try:
                registration.pending.put(None, timeout=1.0)
            except queue.Full:
                log.error("Failed to stop receiver worker", receiver=registration.receiver.name)

        for registration in registrations:
            if registration.thread is not None:
                registration.thread.join(timeout=1.0)
                if registration.thread.is_alive():
                    log.error(
                        "Receiver worker did not exit within timeout",
                        receiver=registration.receiver.name,
                    )

        for registration in registrations:
            try:
                registration.receiver.close()
            except Exception as e:
                log.warning("Receiver close failed", receiver=registration.receiver.name, error=str(e))

        log.info(
            "Telemetry pipeline closed",
            **self.statistics.snapshot().model_dump(),
            health=self.health.status.value,
        )

    def __enter__(self) -> TelemetryPipeline:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_pipeline(config: SinkConfig, stdout_stream: TextIO | None = None) -> TelemetryPipeline:
    """Create a pipeline with the standard receivers for a configuration.

    Registers the ``.ndjson`` file receiver for every item, the
    ``.errors.ndjson`` file receiver for error items, and optionally the
    console mirror.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    config.validate()

    pipeline = TelemetryPipeline(
        health=HealthMonitor(
            max_consecutive_failures=config.max_consecutive_failures,
            max_error_history_size=config.max_error_history_size,
        ),
        severity_threshold=config.error_severity_threshold,
        queue_size=config.queue_size,
        shutdown_grace_seconds=config.shutdown_grace_seconds,
    )
    disk_guard = DiskSpaceGuard(config.min_free_space_bytes)

    for suffix, telemetry_filter in (
        (NDJSON_SUFFIX, AllSignalsFilter()),
        (ERRORS_SUFFIX, ErrorsOnlyFilter()),
    ):
        receiver = FileReceiver(
            config.output_directory,
            suffix=suffix,
            max_file_size_bytes=config.max_file_size_bytes,
            disk_guard=disk_guard,
            retry_attempts=config.write_retry_attempts,
            abort_event=pipeline.abort_event,
        )
        pipeline.register_receiver(receiver, telemetry_filter)

    if config.enable_stdout_mirror:
        stdout_filter = ErrorsOnlyFilter() if config.stdout_errors_only else AllSignalsFilter()
        pipeline.register_receiver(StdoutReceiver(stream=stdout_stream), stdout_filter)

    log.info(
        "Telemetry pipeline ready",
        output_directory=str(config.output_directory),
        receivers=[r.name for r in pipeline.receivers],
    )
    return pipeline
