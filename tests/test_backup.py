"""Tests for snapshot creation, retention, verification, and restore.

Updates:
  v0.2.1 - 2026-10-17 - Cover removal of partial files from interrupted backups.
  v0.2.0 - 2026-10-17 - Cover the periodic backup worker.
  v0.1.0 - 2026-10-17 - Cover snapshot lifecycle and retention.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from core.backup import BACKUP_PREFIX, BackupManager, PeriodicBackupWorker, backup_name
from core.exceptions import BackupError
from core.repository import PromptRepository

if TYPE_CHECKING:
    from conftest import RecordFactory

_FIXED = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)


def test_backup_name_format() -> None:
    moment = datetime(2026, 10, 17, 8, 30, 15, 123456, tzinfo=UTC)

    assert backup_name(moment) == "auto-backup-2026-10-17T08-30-15-123456Z.db"


def test_max_backups_must_be_positive(repository: PromptRepository, tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        BackupManager(repository, tmp_path / "backups", max_backups=0)


def test_create_backup_writes_snapshot_and_records_it(
    repository: PromptRepository, make_record: RecordFactory, tmp_path: Path
) -> None:
    repository.insert(make_record())
    manager = BackupManager(repository, tmp_path / "backups")

    info = manager.create_backup()

    assert info.path.is_file()
    assert info.name.startswith(BACKUP_PREFIX)
    assert info.size_bytes > 0
    assert not list(manager.backup_dir.glob("*.partial"))
    assert repository.get_setting("lastBackup") is not None
    assert repository.list_analytics()[0].backup_count == 1
    assert manager.verify_backup(info.path) == []

    with PromptRepository(info.path).open() as copy:
        assert copy.count() == 1


def test_same_instant_backups_get_distinct_names(
    repository: PromptRepository, tmp_path: Path
) -> None:
    manager = BackupManager(repository, tmp_path / "backups", clock=lambda: _FIXED)

    first = manager.create_backup()
    second = manager.create_backup()

    assert first.name == "auto-backup-2026-10-17T12-00-00-000000Z.db"
    assert second.name == "auto-backup-2026-10-17T12-00-00-000001Z.db"


def test_retention_keeps_newest_snapshots(repository: PromptRepository, tmp_path: Path) -> None:
    manager = BackupManager(repository, tmp_path / "backups", max_backups=3, clock=lambda: _FIXED)

    created = [manager.create_backup().name for _ in range(5)]

    remaining = [info.name for info in manager.list_backups()]
    assert remaining == list(reversed(created[-3:]))
    assert manager.cleanup() == []


def test_failed_snapshot_leaves_no_file(
    repository: PromptRepository, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = BackupManager(repository, tmp_path / "backups")

    def broken_snapshot(destination: Path) -> None:
        destination.write_bytes(b"half written")
        raise OSError("disk full")

    monkeypatch.setattr(repository, "snapshot_to", broken_snapshot)

    with pytest.raises(BackupError):
        manager.create_backup()

    assert list(manager.backup_dir.iterdir()) == []
    assert repository.get_setting("lastBackup") is None


def test_verify_missing_or_corrupt_backup(repository: PromptRepository, tmp_path: Path) -> None:
    manager = BackupManager(repository, tmp_path / "backups")
    garbage = tmp_path / "garbage.db"
    garbage.write_bytes(b"this is not a database" * 100)

    with pytest.raises(BackupError, match="does not exist"):
        manager.verify_backup(tmp_path / "missing.db")
    with pytest.raises(BackupError):
        manager.verify_backup(garbage)


def test_restore_brings_back_snapshot_contents(
    repository: PromptRepository, make_record: RecordFactory, tmp_path: Path
) -> None:
    kept = repository.insert(make_record("Outline a conference talk on testing"))
    manager = BackupManager(repository, tmp_path / "backups")
    info = manager.create_backup()

    repository.delete(kept.id)
    repository.insert(make_record("Something written after the snapshot"))

    manager.restore(info.path)

    assert repository.list_ids() == {kept.id}
    assert [r.id for r in repository.search("conference")] == [kept.id]
    assert repository.search("snapshot") == []


def test_restore_rejects_missing_file(repository: PromptRepository, tmp_path: Path) -> None:
    manager = BackupManager(repository, tmp_path / "backups")

    with pytest.raises(BackupError):
        manager.restore(tmp_path / "backups" / "nope.db")


class _CountingManager:
    def __init__(self, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail
        self.called = threading.Event()

    def create_backup(self) -> None:
        self.calls += 1
        self.called.set()
        if self.fail:
            raise BackupError("no space")


def test_worker_runs_periodically_and_stops() -> None:
    manager = _CountingManager()
    worker = PeriodicBackupWorker(manager, 0.01)  # type: ignore[arg-type]

    worker.start()
    assert manager.called.wait(2.0)
    worker.stop()

    assert not worker.is_running
    calls = manager.calls
    assert calls >= 1

    manager.called.clear()
    worker.start()
    assert manager.called.wait(2.0)
    worker.stop()
    assert manager.calls > calls


def test_worker_logs_failures_and_keeps_running(caplog: pytest.LogCaptureFixture) -> None:
    manager = _CountingManager(fail=True)
    worker = PeriodicBackupWorker(manager, 0.01)  # type: ignore[arg-type]

    with caplog.at_level("ERROR", logger="prompt_store.backup_worker"):
        worker.start()
        assert manager.called.wait(2.0)
        manager.called.clear()
        assert manager.called.wait(2.0)
        worker.stop()

    assert manager.calls >= 2
    assert "Scheduled backup failed" in caplog.text


def test_worker_rejects_non_positive_interval(
    repository: PromptRepository, tmp_path: Path
) -> None:
    with pytest.raises(ValueError):
        PeriodicBackupWorker(BackupManager(repository, tmp_path), 0)


def test_cleanup_removes_interrupted_partial_files(
    repository: PromptRepository, tmp_path: Path
) -> None:
    manager = BackupManager(repository, tmp_path / "backups", clock=lambda: _FIXED)
    manager.backup_dir.mkdir()
    leftover = manager.backup_dir / "auto-backup-2026-10-16T09-00-00-000000Z.db.partial"
    leftover.write_bytes(b"half written")

    info = manager.create_backup()

    assert not leftover.exists()
    assert [path.name for path in manager.backup_dir.iterdir()] == [info.name]

    leftover.write_bytes(b"half written")
    assert manager.cleanup() == [leftover]
