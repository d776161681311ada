"""Tests for telemetry file management and diagnostics."""

from pathlib import Path

import pytest

from otel_sink.pipeline import (
    DiagnosticsCollector,
    HealthMonitor,
    HealthStatus,
    SignalType,
    TelemetryStatistics,
    clear_telemetry_files,
    count_error_files,
    list_error_files,
    list_telemetry_files,
)


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "telemetry"
    out.mkdir()
    (out / "traces.20240102_030405_678.ndjson").write_text('{"a":1}\n')
    (out / "traces.20240102_030405_678.errors.ndjson").write_text('{"a":1}\n')
    (out / "logs.20240102_030406_001.ndjson").write_text('{"b":22}\n')
    (out / "notes.txt").write_text("not telemetry")
    return out


class TestListing:
    """Tests for listing telemetry files."""

    def test_list_all(self, output_dir: Path):
        """Every NDJSON file is listed, other files are not."""
        names = [Path(info.path).name for info in list_telemetry_files(output_dir)]
        assert names == [
            "logs.20240102_030406_001.ndjson",
            "traces.20240102_030405_678.errors.ndjson",
            "traces.20240102_030405_678.ndjson",
        ]

    def test_list_by_signal(self, output_dir: Path):
        """A signal narrows the listing."""
        infos = list_telemetry_files(output_dir, "logs")
        assert len(infos) == 1
        assert infos[0].size_bytes == len('{"b":22}\n')
        assert infos[0].last_modified.tzinfo is not None

    def test_list_unknown_signal(self, output_dir: Path):
        """Unknown signals list nothing instead of reaching the glob."""
        assert list_telemetry_files(output_dir, "*") == []
        assert list_telemetry_files(output_dir, "../etc") == []

    def test_list_missing_directory(self, tmp_path: Path):
        """A directory that does not exist yet is empty."""
        assert list_telemetry_files(tmp_path / "absent") == []
        assert count_error_files(tmp_path / "absent") == 0

    def test_error_files(self, output_dir: Path):
        """Error files are listed by name."""
        assert list_error_files(output_dir) == ["traces.20240102_030405_678.errors.ndjson"]
        assert count_error_files(output_dir) == 1


class TestClearing:
    """Tests for clearing the output directory."""

    def test_clear(self, output_dir: Path):
        """All NDJSON files are deleted; other files are kept."""
        result = clear_telemetry_files(output_dir)

        assert result.files_before == 3
        assert result.files_deleted == 3
        assert result.bytes_freed == 8 + 8 + 9
        assert list_telemetry_files(output_dir) == []
        assert (output_dir / "notes.txt").exists()

    def test_clear_skips_locked_file(self, output_dir: Path, monkeypatch: pytest.MonkeyPatch):
        """A file that stays locked is retried, then skipped."""
        real_unlink = Path.unlink
        attempts = []

        def unlink(self, missing_ok=False):
            if self.name.startswith("logs."):
                attempts.append(self)
                raise PermissionError("file in use")
            return real_unlink(self, missing_ok=missing_ok)

        monkeypatch.setattr(Path, "unlink", unlink)
        monkeypatch.setattr("otel_sink.pipeline.files.DELETE_RETRY_DELAY", 0)

        result = clear_telemetry_files(output_dir)

        assert result.files_deleted == 2
        assert result.bytes_freed == 16
        assert len(attempts) == 3
        assert (output_dir / "logs.20240102_030406_001.ndjson").exists()


class TestDiagnostics:
    """Tests for the diagnostics collector."""

    def test_snapshot(self, output_dir: Path):
        """The snapshot combines health, counters and files."""
        health = HealthMonitor()
        stats = TelemetryStatistics()
        stats.record_accepted(SignalType.LOGS)
        collector = DiagnosticsCollector(output_dir, health, stats)

        snapshot = collector.snapshot()

        assert snapshot.health.status is HealthStatus.HEALTHY
        assert snapshot.statistics.logs == 1
        assert snapshot.error_file_count == 1
        assert snapshot.output_directory == str(output_dir.resolve())
        assert len(collector.files("traces")) == 2
