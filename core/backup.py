"""Point-in-time database snapshots with bounded retention.

Snapshots are written with the SQLite online backup API to a ``.partial``
file first and renamed into place only once complete, so a listed backup is
always whole. Retention keeps the newest ``max_backups`` snapshots by file
creation time.

Updates:
  v0.3.1 - 2026-10-17 - Remove partial files left behind by an interrupted backup.
  v0.3.0 - 2026-10-17 - Add a periodic backup worker thread.
  v0.2.0 - 2026-10-17 - Add snapshot listing, verification, and restore.
  v0.1.0 - 2026-10-17 - Initial snapshot writer with retention cleanup.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from models.prompt_record import format_timestamp, utc_now

from .exceptions import BackupError
from .repository import RepositoryError, verify_database_file

if TYPE_CHECKING:
    from collections.abc import Callable

    from .repository import PromptRepository

logger = logging.getLogger("prompt_store.backup")

BACKUP_PREFIX = "auto-backup-"
BACKUP_SUFFIX = ".db"
PARTIAL_SUFFIX = ".partial"
DEFAULT_MAX_BACKUPS = 10
_STAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"


@dataclass(slots=True, frozen=True)
class BackupInfo:
    """A completed snapshot file on disk."""

    path: Path
    created_at: datetime
    size_bytes: int

    @property
    def name(self) -> str:
        return self.path.name

    def to_payload(self) -> dict[str, object]:
        return {
            "name": self.name,
            "path": str(self.path),
            "createdAt": format_timestamp(self.created_at),
            "sizeBytes": self.size_bytes,
        }


def _creation_time(stat_result: os.stat_result) -> float:
    return float(getattr(stat_result, "st_birthtime", stat_result.st_ctime))


def backup_name(moment: datetime) -> str:
    """Return the snapshot file name for *moment* (UTC, microsecond precision)."""
    return f"{BACKUP_PREFIX}{moment.astimezone(UTC).strftime(_STAMP_FORMAT)}{BACKUP_SUFFIX}"


class BackupManager:
    """Create, list, prune, verify, and restore database snapshots."""

    def __init__(
        self,
        repository: PromptRepository,
        backup_dir: Path,
        *,
        max_backups: int = DEFAULT_MAX_BACKUPS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_backups < 1:
            raise ValueError("max_backups must be at least 1")
        self._repository = repository
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups
        self._clock = clock
        self._lock = threading.RLock()

    def _next_path(self) -> Path:
        moment = self._clock()
        candidate = self.backup_dir / backup_name(moment)
        while candidate.exists() or candidate.with_name(candidate.name + PARTIAL_SUFFIX).exists():
            moment += timedelta(microseconds=1)
            candidate = self.backup_dir / backup_name(moment)
        return candidate

    def create_backup(self) -> BackupInfo:
        """Write a new snapshot, record it, and prune old snapshots.

        Raises :class:`BackupError` when no complete snapshot was written;
        retention failures afterwards are only logged.
        """
        with self._lock:
            try:
                self.backup_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise BackupError(f"Unable to create backup directory {self.backup_dir}") from exc
            destination = self._next_path()
            partial = destination.with_name(destination.name + PARTIAL_SUFFIX)
            try:
                self._repository.snapshot_to(partial)
                partial.replace(destination)
            except (RepositoryError, OSError) as exc:
                partial.unlink(missing_ok=True)
                raise BackupError(f"Backup to {destination} failed") from exc

            info = self._describe(destination)
            try:
                self._repository.record_activity(backups=1)
                self._repository.set_setting("lastBackup", format_timestamp(info.created_at))
            except RepositoryError as exc:
                raise BackupError(f"Backup {destination.name} written but not recorded") from exc
            logger.info("Backup created: %s (%s bytes)", destination.name, info.size_bytes)
            self.cleanup()
        return info

    def list_backups(self) -> list[BackupInfo]:
        """Return completed snapshots, newest first."""
        if not self.backup_dir.is_dir():
            return []
        entries: list[tuple[float, str, BackupInfo]] = []
        for path in self.backup_dir.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}"):
            try:
                stat_result = path.stat()
            except OSError:
                continue
            created = _creation_time(stat_result)
            info = BackupInfo(
                path=path,
                created_at=datetime.fromtimestamp(created, tz=UTC),
                size_bytes=stat_result.st_size,
            )
            entries.append((created, path.name, info))
        entries.sort(key=lambda entry: (entry[0], entry[1]), reverse=True)
        return [info for _, _, info in entries]

    def cleanup(self) -> list[Path]:
        """Delete snapshots beyond ``max_backups`` and leftover partial files.

        A ``.partial`` file only survives when a process died mid-backup; no
        backup is in progress while the manager lock is held. Returns the
        paths removed.
        """
        with self._lock:
            stale: list[tuple[Path, str]] = []
            if self.backup_dir.is_dir():
                stale.extend(
                    (path, "partial backup")
                    for path in self.backup_dir.glob(f"{BACKUP_PREFIX}*{PARTIAL_SUFFIX}")
                )
            stale.extend(
                (info.path, "old backup") for info in self.list_backups()[self.max_backups :]
            )
            removed: list[Path] = []
            for path, label in stale:
                try:
                    path.unlink()
                except OSError as exc:
                    logger.warning("Unable to remove %s %s: %s", label, path.name, exc)
                    continue
                removed.append(path)
        if removed:
            logger.debug("Removed %s stale backup file(s)", len(removed))
        return removed

    def verify_backup(self, path: Path) -> list[str]:
        """Return integrity problems in the snapshot at *path* (empty when healthy)."""
        if not Path(path).is_file():
            raise BackupError(f"Backup {path} does not exist")
        try:
            return verify_database_file(Path(path))
        except RepositoryError as exc:
            raise BackupError(str(exc)) from exc

    def restore(self, path: Path) -> None:
        """Replace the live database with the verified snapshot at *path*."""
        problems = self.verify_backup(path)
        if problems:
            raise BackupError(f"Backup {path} failed integrity check: {'; '.join(problems)}")
        try:
            self._repository.restore_from(Path(path))
            self._repository.rebuild_index()
        except RepositoryError as exc:
            raise BackupError(f"Restore from {path} failed") from exc
        logger.info("Database restored from %s", Path(path).name)

    def _describe(self, path: Path) -> BackupInfo:
        try:
            stat_result = path.stat()
        except OSError as exc:
            raise BackupError(f"Backup {path} vanished after writing") from exc
        return BackupInfo(
            path=path,
            created_at=datetime.fromtimestamp(_creation_time(stat_result), tz=UTC),
            size_bytes=stat_result.st_size,
        )


class PeriodicBackupWorker:
    """Background thread that snapshots the store on a fixed interval."""

    def __init__(
        self,
        manager: BackupManager,
        interval_seconds: float,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._manager = manager
        self._interval = interval_seconds
        self._logger = logger or logging.getLogger("prompt_store.backup_worker")
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread; a stopped worker may be started again."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="prompt-store-backup", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Signal the background thread to stop and wait briefly for it."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=2.0)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._manager.create_backup()
            except BackupError as exc:
                self._logger.error("Scheduled backup failed: %s", exc, exc_info=exc)


__all__ = [
    "BACKUP_PREFIX",
    "DEFAULT_MAX_BACKUPS",
    "BackupInfo",
    "BackupManager",
    "PeriodicBackupWorker",
    "backup_name",
]
