"""Read-only diagnostics over the pipeline's health, statistics and files."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from .files import FileInfo, count_error_files, list_telemetry_files
from .health import HealthMonitor, HealthSnapshot
from .stats import StatisticsSnapshot, TelemetryStatistics


class DiagnosticsSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    health: HealthSnapshot
    statistics: StatisticsSnapshot
    output_directory: str
    error_file_count: int


class DiagnosticsCollector:
    """Bundles what status pages and CLI commands need to know.

    Never mutates the monitor or the counters.
    """

    def __init__(
        self,
        output_directory: Path,
        health: HealthMonitor,
        statistics: TelemetryStatistics,
    ):
        self.output_directory = Path(output_directory)
        self._health = health
        self._statistics = statistics

    def health(self) -> HealthSnapshot:
        return self._health.snapshot()

    def statistics(self) -> StatisticsSnapshot:
        return self._statistics.snapshot()

    def files(self, signal: str | None = None) -> list[FileInfo]:
        return list_telemetry_files(self.output_directory, signal)

    def snapshot(self) -> DiagnosticsSnapshot:
        return DiagnosticsSnapshot(
            health=self.health(),
            statistics=self.statistics(),
            output_directory=str(self.output_directory.resolve()),
            error_file_count=count_error_files(self.output_directory),
        )
