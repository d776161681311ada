"""Configuration loading for otel-sink."""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from otel_sink.errors import ConfigurationError

MIB = 1024 * 1024

ENV_PREFIX = "OTEL_SINK_"

# Protocol severity numbers span 1 (TRACE) to 24 (FATAL4)
_MIN_SEVERITY = 1
_MAX_SEVERITY = 24

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})

_TYPE_NAMES = {Path: "a path", int: "an integer", float: "a number", bool: "a boolean"}


def _coerce(label: str, value: Any, kind: type, errors: list[str]) -> Any:
    """Convert an environment or YAML value to ``kind``.

    Values that do not convert are reported in ``errors`` and come back
    as None.
    """
    try:
        if kind is bool:
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE_VALUES:
                return True
            if text in _FALSE_VALUES:
                return False
            raise ValueError(value)
        if kind is Path:
            if not isinstance(value, (str, os.PathLike)):
                raise TypeError(value)
            return Path(value)
        if isinstance(value, bool) or value is None:
            raise TypeError(value)
        if kind is int:
            if isinstance(value, float):
                if not value.is_integer():
                    raise ValueError(value)
                return int(value)
            return int(value.strip() if isinstance(value, str) else value)
        return float(value)
    except (TypeError, ValueError):
        errors.append(f"{label} must be {_TYPE_NAMES[kind]}, got {value!r}")
        return None


def _has_type(value: Any, kind: type) -> bool:
    if kind is bool:
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if kind is float:
        return isinstance(value, (int, float))
    return isinstance(value, kind)


@dataclass
class SinkConfig:
    """Pipeline configuration."""

    output_directory: Path = Path("./telemetry-data")
    max_file_size_bytes: int = 100 * MIB
    max_consecutive_failures: int = 10
    max_error_history_size: int = 50
    enable_stdout_mirror: bool = False
    stdout_errors_only: bool = False
    error_severity_threshold: int = 17
    min_free_space_bytes: int = 100 * MIB
    queue_size: int = 1000
    shutdown_grace_seconds: float = 5.0
    write_retry_attempts: int = 3

    @classmethod
    def from_env(cls) -> "SinkConfig":
        """Load configuration from OTEL_SINK_* environment variables.

        Raises:
            ConfigurationError: If a variable does not parse as its option's type
        """
        errors: list[str] = []
        values: dict[str, Any] = {}

        for option in fields(cls):
            name = f"{ENV_PREFIX}{option.name.upper()}"
            raw = os.environ.get(name)
            if raw is not None:
                values[option.name] = _coerce(name, raw, option.type, errors)

        if errors:
            raise ConfigurationError(errors)
        return cls(**values)

    @classmethod
    def from_file(cls, path: Path) -> "SinkConfig":
        """Load configuration from YAML file, with env vars as the base.

        The file may hold the options at top level or under a ``sink`` key.
        Unknown keys and values of the wrong type are rejected together.
        """
        config = cls.from_env()

        if not path.exists():
            return config

        with open(path) as f:
            data = yaml.safe_load(f)

        if not data:
            return config
        if not isinstance(data, dict):
            raise ConfigurationError([f"{path}: expected a mapping at top level"])
        if isinstance(data.get("sink"), dict):
            data = data["sink"]

        types = {option.name: option.type for option in fields(cls)}
        errors = [f"Unknown option: {key}" for key in sorted(map(str, set(data) - set(types)))]

        for key, value in data.items():
            if key in types:
                setattr(config, key, _coerce(key, value, types[key], errors))

        if errors:
            raise ConfigurationError(errors)
        return config

    def validate(self) -> "SinkConfig":
        """Check every option and raise ConfigurationError listing all problems."""
        errors = [
            f"{option.name} must be {_TYPE_NAMES[option.type]}"
            for option in fields(self)
            if not _has_type(getattr(self, option.name), option.type)
        ]
        # Range checks below assume well-typed values
        if errors:
            raise ConfigurationError(errors)

        if not str(self.output_directory).strip():
            errors.append("output_directory cannot be blank")
        if self.max_file_size_bytes <= 0:
            errors.append("max_file_size_bytes must be greater than 0")
        if self.max_consecutive_failures < 1:
            errors.append("max_consecutive_failures must be at least 1")
        if self.max_error_history_size < 1:
            errors.append("max_error_history_size must be at least 1")
        if not _MIN_SEVERITY <= self.error_severity_threshold <= _MAX_SEVERITY:
            errors.append(
                f"error_severity_threshold must be between {_MIN_SEVERITY} and {_MAX_SEVERITY}"
            )
        if self.min_free_space_bytes < 0:
            errors.append("min_free_space_bytes cannot be negative")
        if self.queue_size <= 0:
            errors.append("queue_size must be greater than 0")
        if self.shutdown_grace_seconds < 0:
            errors.append("shutdown_grace_seconds cannot be negative")
        if self.write_retry_attempts < 1:
            errors.append("write_retry_attempts must be at least 1")

        if errors:
            raise ConfigurationError(errors)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Return a plain dict suitable for display."""
        data = asdict(self)
        data["output_directory"] = str(self.output_directory)
        return data
