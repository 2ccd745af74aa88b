"""Factories for constructing prompt stores from validated settings.

Updates:
  v0.1.2 - 2026-10-17 - Pass the configured autosave delay to the store.
  v0.1.1 - 2026-10-17 - Attach the periodic backup worker when an interval is configured.
  v0.1.0 - 2026-10-17 - Build SQLitePromptStore with repository, backups, and metrics.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .backup import BackupManager, PeriodicBackupWorker
from .duplicates import DuplicateDetector
from .metrics import MetricsCollector
from .repository import PromptRepository
from .store import SQLitePromptStore

if TYPE_CHECKING:  # pragma: no cover - typing only
    from config import PromptStoreSettings

factory_logger = logging.getLogger("prompt_store.factory")


def build_prompt_store(
    settings: PromptStoreSettings,
    *,
    repository: PromptRepository | None = None,
    metrics: MetricsCollector | None = None,
) -> SQLitePromptStore:
    """Return a configured, not yet initialised, :class:`SQLitePromptStore`.

    Call ``init()`` (or use the store as a context manager) before use.
    """
    repository = repository or PromptRepository(settings.db_path)
    backup_dir = settings.backup_dir or settings.db_path.parent / "backups"
    backup_manager = BackupManager(repository, backup_dir, max_backups=settings.max_backups)
    worker: PeriodicBackupWorker | None = None
    if settings.backup_interval_minutes > 0:
        worker = PeriodicBackupWorker(backup_manager, settings.backup_interval_seconds)
        factory_logger.debug(
            "Periodic backups every %.1f minute(s) into %s",
            settings.backup_interval_minutes,
            backup_dir,
        )
    return SQLitePromptStore(
        repository,
        backup_manager=backup_manager,
        detector=DuplicateDetector(
            settings.duplicate_threshold,
            min_tokens=settings.duplicate_min_tokens,
        ),
        metrics=metrics
        or MetricsCollector(
            window=settings.metrics_window,
            slow_threshold_ms=settings.slow_operation_ms,
        ),
        backup_worker=worker,
        autosave_delay=settings.autosave_delay_seconds,
    )


__all__ = ["build_prompt_store"]
