"""Listing and clearing of telemetry files in the output directory."""

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from .models import SignalType
from .rotation import ERRORS_SUFFIX, NDJSON_SUFFIX

log = structlog.get_logger()

DELETE_ATTEMPTS = 3
DELETE_RETRY_DELAY = 0.1  # seconds


class FileInfo(BaseModel):
    """A telemetry file on disk."""

    model_config = ConfigDict(frozen=True)

    path: str
    size_bytes: int
    last_modified: datetime


@dataclass
class ClearResult:
    """Outcome of clearing the output directory."""

    directory: Path
    files_before: int
    files_deleted: int
    bytes_freed: int


def _ndjson_files(directory: Path, pattern: str) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.glob(pattern) if p.is_file())


def list_telemetry_files(directory: Path, signal: str | None = None) -> list[FileInfo]:
    """List NDJSON files, optionally for one signal.

    An unknown signal yields an empty list rather than an error, so the value
    can come straight from a query string without reaching the glob.
    """
    if signal is not None:
        if not SignalType.is_valid(signal):
            return []
        pattern = f"{signal.lower()}.*{NDJSON_SUFFIX}"
    else:
        pattern = f"*{NDJSON_SUFFIX}"

    infos = []
    for path in _ndjson_files(Path(directory), pattern):
        try:
            stat = path.stat()
        except OSError as e:
            log.debug("Skipping unreadable file", path=str(path), error=str(e))
            continue
        infos.append(
            FileInfo(
                path=str(path),
                size_bytes=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, UTC),
            )
        )
    return infos


def list_error_files(directory: Path) -> list[str]:
    """Return names of ``*.errors.ndjson`` files, sorted."""
    return [p.name for p in _ndjson_files(Path(directory), f"*{ERRORS_SUFFIX}")]


def count_error_files(directory: Path) -> int:
    return len(list_error_files(directory))


def _delete(path: Path) -> bool:
    try:
        for attempt in Retrying(
            stop=stop_after_attempt(DELETE_ATTEMPTS),
            wait=wait_fixed(DELETE_RETRY_DELAY),
            # PermissionError is how Windows reports a file held open by a writer
            retry=retry_if_exception_type(PermissionError),
            reraise=True,
        ):
            with attempt:
                path.unlink(missing_ok=True)
    except OSError as e:
        log.warning("Failed to delete telemetry file", path=str(path), error=str(e))
        return False
    return True


def clear_telemetry_files(directory: Path) -> ClearResult:
    """Delete every NDJSON file in the directory.

    Files locked by a concurrent writer are retried a few times, then skipped.
    """
    directory = Path(directory)
    files = _ndjson_files(directory, f"*{NDJSON_SUFFIX}")

    deleted = 0
    freed = 0
    for path in files:
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        if _delete(path):
            deleted += 1
            freed += size
    log.info("Cleared telemetry files", directory=str(directory), deleted=deleted, total=len(files))

    return ClearResult(
        directory=directory,
        files_before=len(files),
        files_deleted=deleted,
        bytes_freed=freed,
    )
