"""Basic tests for otel-sink."""

import json
import logging
from pathlib import Path

import pytest
import structlog

from otel_sink import __version__
from otel_sink.config import MIB, SinkConfig
from otel_sink.errors import ConfigurationError, ReceiverWriteError, SinkError


def test_version() -> None:
    """Test that version is defined."""
    assert __version__ == "0.1.0"


def test_config_defaults() -> None:
    """Test default configuration values."""
    config = SinkConfig()

    assert config.output_directory == Path("./telemetry-data")
    assert config.max_file_size_bytes == 100 * MIB
    assert config.max_consecutive_failures == 10
    assert config.max_error_history_size == 50
    assert config.enable_stdout_mirror is False
    assert config.error_severity_threshold == 17
    assert config.validate() is config


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test loading config from environment variables."""
    monkeypatch.setenv("OTEL_SINK_OUTPUT_DIRECTORY", "/var/lib/otel")
    monkeypatch.setenv("OTEL_SINK_MAX_FILE_SIZE_BYTES", "2048")
    monkeypatch.setenv("OTEL_SINK_MAX_CONSECUTIVE_FAILURES", "3")
    monkeypatch.setenv("OTEL_SINK_ENABLE_STDOUT_MIRROR", "yes")
    monkeypatch.setenv("OTEL_SINK_STDOUT_ERRORS_ONLY", "0")
    monkeypatch.setenv("OTEL_SINK_SHUTDOWN_GRACE_SECONDS", "1.5")

    config = SinkConfig.from_env()

    assert config.output_directory == Path("/var/lib/otel")
    assert config.max_file_size_bytes == 2048
    assert config.max_consecutive_failures == 3
    assert config.enable_stdout_mirror is True
    assert config.stdout_errors_only is False
    assert config.shutdown_grace_seconds == 1.5


def test_config_from_env_rejects_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unparseable variables are reported together as a ConfigurationError."""
    monkeypatch.setenv("OTEL_SINK_QUEUE_SIZE", "abc")
    monkeypatch.setenv("OTEL_SINK_ENABLE_STDOUT_MIRROR", "maybe")
    monkeypatch.setenv("OTEL_SINK_SHUTDOWN_GRACE_SECONDS", "soon")

    with pytest.raises(ConfigurationError) as exc_info:
        SinkConfig.from_env()

    assert exc_info.value.errors == [
        "OTEL_SINK_ENABLE_STDOUT_MIRROR must be a boolean, got 'maybe'",
        "OTEL_SINK_QUEUE_SIZE must be an integer, got 'abc'",
        "OTEL_SINK_SHUTDOWN_GRACE_SECONDS must be a number, got 'soon'",
    ]


def test_config_from_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """File values override environment values."""
    monkeypatch.setenv("OTEL_SINK_QUEUE_SIZE", "42")
    path = tmp_path / "sink.yaml"
    path.write_text(
        "output_directory: /data/otel\n"
        "max_file_size_bytes: 1024\n"
        "enable_stdout_mirror: true\n"
    )

    config = SinkConfig.from_file(path)

    assert config.output_directory == Path("/data/otel")
    assert config.max_file_size_bytes == 1024
    assert config.enable_stdout_mirror is True
    assert config.queue_size == 42


def test_config_from_file_nested_section(tmp_path: Path) -> None:
    """Options may live under a 'sink' key."""
    path = tmp_path / "sink.yaml"
    path.write_text("sink:\n  max_consecutive_failures: 4\n")

    assert SinkConfig.from_file(path).max_consecutive_failures == 4


def test_config_from_missing_file(tmp_path: Path) -> None:
    """A missing file falls back to the environment."""
    config = SinkConfig.from_file(tmp_path / "absent.yaml")
    assert config.max_error_history_size == 50


def test_config_from_file_rejects_unknown_keys(tmp_path: Path) -> None:
    """Typos in option names are reported, not ignored."""
    path = tmp_path / "sink.yaml"
    path.write_text("max_file_size: 10\n")

    with pytest.raises(ConfigurationError) as exc_info:
        SinkConfig.from_file(path)

    assert exc_info.value.errors == ["Unknown option: max_file_size"]


def test_config_from_file_rejects_bad_types(tmp_path: Path) -> None:
    """Wrong value types fail loading instead of surfacing in validate."""
    path = tmp_path / "sink.yaml"
    path.write_text(
        'max_file_size_bytes: "big"\n'
        "queue_size: 2.5\n"
        "stdout_errors_only: [a, b]\n"
        "rotate_daily: true\n"
    )

    with pytest.raises(ConfigurationError) as exc_info:
        SinkConfig.from_file(path)

    assert exc_info.value.errors == [
        "Unknown option: rotate_daily",
        "max_file_size_bytes must be an integer, got 'big'",
        "queue_size must be an integer, got 2.5",
        "stdout_errors_only must be a boolean, got ['a', 'b']",
    ]


def test_config_from_file_coerces_values(tmp_path: Path) -> None:
    """Numeric strings and whole floats become the option's type."""
    path = tmp_path / "sink.yaml"
    path.write_text(
        'max_file_size_bytes: "2048"\n'
        "queue_size: 10.0\n"
        "shutdown_grace_seconds: 3\n"
        'enable_stdout_mirror: "on"\n'
    )

    config = SinkConfig.from_file(path)

    assert config.max_file_size_bytes == 2048
    assert config.queue_size == 10
    assert isinstance(config.queue_size, int)
    assert config.shutdown_grace_seconds == 3.0
    assert config.enable_stdout_mirror is True
    assert config.validate() is config


def test_config_validate_rejects_wrong_types() -> None:
    """Values assigned in code are type checked before range checks."""
    config = SinkConfig()
    config.max_file_size_bytes = "big"  # type: ignore[assignment]
    config.enable_stdout_mirror = 1  # type: ignore[assignment]

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate()

    assert exc_info.value.errors == [
        "max_file_size_bytes must be an integer",
        "enable_stdout_mirror must be a boolean",
    ]


def test_config_from_file_rejects_non_mapping(tmp_path: Path) -> None:
    """A YAML list is not a configuration."""
    path = tmp_path / "sink.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigurationError):
        SinkConfig.from_file(path)


def test_config_validate_collects_all_errors() -> None:
    """Every invalid option is reported at once."""
    config = SinkConfig(
        max_file_size_bytes=0,
        max_consecutive_failures=0,
        error_severity_threshold=25,
        queue_size=0,
    )

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate()

    errors = exc_info.value.errors
    assert len(errors) == 4
    assert "max_file_size_bytes must be greater than 0" in errors
    assert "Invalid configuration" in str(exc_info.value)


def test_config_to_dict() -> None:
    """Output directory is rendered as a string."""
    data = SinkConfig(output_directory=Path("out")).to_dict()
    assert data["output_directory"] == "out"
    assert data["max_file_size_bytes"] == 100 * MIB


def test_receiver_write_error_names_receiver() -> None:
    """ReceiverWriteError messages lead with the receiver name."""
    error = ReceiverWriteError("file.ndjson", "disk full")
    assert isinstance(error, SinkError)
    assert error.receiver == "file.ndjson"
    assert str(error) == "file.ndjson: disk full"


def test_configure_logging_json(capsys: pytest.CaptureFixture[str]) -> None:
    """Logs are JSON on stderr with the service name bound."""
    from otel_sink.logging import configure_logging

    configure_logging("otel-sink-test", "INFO", json_output=True)
    structlog.get_logger("otel_sink.test").info("Rotated telemetry file", signal="traces")

    captured = capsys.readouterr()
    assert captured.out == ""
    entry = json.loads(captured.err.strip().splitlines()[-1])
    assert entry["event"] == "Rotated telemetry file"
    assert entry["service"] == "otel-sink-test"
    assert entry["signal"] == "traces"
    assert entry["level"] == "info"


def test_configure_logging_replaces_handlers() -> None:
    """Reconfiguring leaves one stderr handler and follows the new level."""
    from otel_sink.logging import configure_logging

    configure_logging("otel-sink-test", "INFO", json_output=True)
    assert logging.getLogger("werkzeug").level == logging.WARNING

    configure_logging("otel-sink-test", "DEBUG", json_output=False)

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
    assert logging.getLogger("werkzeug").level == logging.NOTSET
