"""Free disk space check run before each file write."""

import shutil
from collections.abc import Callable
from pathlib import Path
from typing import NamedTuple

import structlog

log = structlog.get_logger()

DEFAULT_MIN_FREE_SPACE_BYTES = 100 * 1024 * 1024


class DiskUsage(NamedTuple):
    total: int
    used: int
    free: int


class DiskSpaceGuard:
    """Refuses writes that would leave less than a safety margin free.

    Usage lookups default to ``shutil.disk_usage`` and can be swapped in tests.
    """

    def __init__(
        self,
        min_free_space_bytes: int = DEFAULT_MIN_FREE_SPACE_BYTES,
        disk_usage: Callable[[Path], DiskUsage] | None = None,
    ):
        self.min_free_space_bytes = min_free_space_bytes
        self._disk_usage = disk_usage or shutil.disk_usage

    def has_space(self, path: Path, required_bytes: int) -> bool:
        """Check whether ``required_bytes`` fit on the volume holding ``path``.

        Usage is read from the nearest existing ancestor of ``path``. If that
        lookup fails the write is allowed and the failure is logged.
        """
        target = Path(path)
        while not target.exists() and target.parent != target:
            target = target.parent

        try:
            free = self._disk_usage(target).free
        except OSError as e:
            log.warning("Disk space check failed", path=str(path), error=str(e))
            return True

        needed = required_bytes + self.min_free_space_bytes
        if free < needed:
            log.warning(
                "Insufficient disk space",
                path=str(path),
                free_mb=free // (1024 * 1024),
                required_mb=needed // (1024 * 1024),
            )
            return False
        return True
