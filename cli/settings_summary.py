"""Printable summaries for prompt store configuration.

Updates:
  v0.1.0 - 2026-10-17 - Render storage, backup, and duplicate detection settings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .utils import describe_path

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from config import PromptStoreSettings


def print_settings_summary(settings: PromptStoreSettings) -> None:
    """Emit a readable summary of the resolved configuration."""
    interval = settings.backup_interval_minutes
    lines = [
        "Prompt store configuration",
        "==========================",
        f"Database path ........ {describe_path(settings.db_path, expect_directory=False, allow_missing_file=True)}",  # noqa: E501
        f"Backup directory ..... {describe_path(settings.backup_dir, expect_directory=True, allow_missing_file=True)}",  # noqa: E501
        f"Backups retained ..... {settings.max_backups}",
        f"Backup interval ...... {'disabled' if interval <= 0 else f'{interval:g} minute(s)'}",
        f"Duplicate threshold .. {settings.duplicate_threshold:.2f}"
        f" (min {settings.duplicate_min_tokens} tokens)",
        f"Slow operation ....... {settings.slow_operation_ms:g} ms",
        f"Metrics window ....... {settings.metrics_window} samples",
        f"Autosave delay ....... {settings.autosave_delay_ms} ms",
    ]
    print("\n".join(lines))
