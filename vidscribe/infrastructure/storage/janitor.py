"""
Retention janitor for the local caches.

Videos and screenshots accumulate on disk. On startup we sweep the cache
directories and delete anything older than the retention window, using the
file's mtime as its age. Nothing else is tracked; the filesystem is the
source of truth.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class SweepResult:
    """What a sweep removed."""
    deleted_count: int = 0
    bytes_freed: int = 0

    def __add__(self, other: "SweepResult") -> "SweepResult":
        return SweepResult(
            deleted_count=self.deleted_count + other.deleted_count,
            bytes_freed=self.bytes_freed + other.bytes_freed,
        )

    @property
    def mb_freed(self) -> float:
        return self.bytes_freed / (1024 * 1024)


class RetentionJanitor:
    """
    Deletes regular files older than retention_days.

    A file exactly at the boundary is kept; only age > retention is removed.
    Subdirectories are never descended into or removed.
    """

    def __init__(self, directories: Iterable[Path], retention_days: int = 7) -> None:
        if retention_days < 0:
            raise ValueError("Retention days cannot be negative")
        self._directories = [Path(d) for d in directories]
        self._retention_seconds = retention_days * SECONDS_PER_DAY
        self._retention_days = retention_days

    @property
    def directories(self) -> list[Path]:
        return list(self._directories)

    def sweep_directory(self, directory: Path, now: Optional[float] = None) -> SweepResult:
        """Sweep one directory. A missing directory is not an error."""
        now = time.time() if now is None else now
        directory = Path(directory)
        result = SweepResult()

        if not directory.is_dir():
            logger.debug("Skipping missing cache directory", extra={"directory": str(directory)})
            return result

        for entry in directory.iterdir():
            try:
                if not entry.is_file():
                    continue
                stat = entry.stat()
                age = now - stat.st_mtime
                if age <= self._retention_seconds:
                    continue
                entry.unlink()
            except OSError as e:
                logger.warning(
                    "Failed to sweep file",
                    extra={"path": str(entry), "error": str(e)}
                )
                continue

            result.deleted_count += 1
            result.bytes_freed += stat.st_size
            logger.debug(
                "Deleted expired file",
                extra={"path": str(entry), "age_days": round(age / SECONDS_PER_DAY, 1)}
            )

        return result

    def sweep(self, now: Optional[float] = None) -> SweepResult:
        """Sweep every configured directory and return the combined result."""
        total = SweepResult()
        for directory in self._directories:
            total = total + self.sweep_directory(directory, now=now)

        logger.info(
            "Retention sweep finished",
            extra={
                "retention_days": self._retention_days,
                "deleted_count": total.deleted_count,
                "mb_freed": round(total.mb_freed, 2),
            }
        )
        return total


def run_startup_sweep(janitor: RetentionJanitor) -> Optional[SweepResult]:
    """
    Sweep caches at startup. A failed sweep is logged and never blocks startup.
    """
    try:
        return janitor.sweep()
    except Exception as e:
        logger.error(
            "Startup retention sweep failed",
            extra={"error": str(e)},
            exc_info=e,
        )
        return None
