"""CLI command handlers for the prompt store.

Updates:
  v0.2.2 - 2026-10-17 - Drop the store-optional flag; every command runs against the store.
  v0.2.1 - 2026-10-17 - Add the optimize command.
  v0.2.0 - 2026-10-17 - Add export/import and metrics-aware stats output.
  v0.1.0 - 2026-10-17 - Backup, restore, verify, and search handlers.
"""

from __future__ import annotations

import argparse
import logging
import textwrap
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core import BackupError, PromptStoreError

from .utils import (
    format_metric,
    print_and_log,
    read_payload,
    resolve_export_format,
    write_payload,
)

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from core.store import SQLitePromptStore

EXIT_OK = 0
EXIT_COMMAND_FAILED = 4
EXIT_INVALID_INPUT = 5
EXIT_INTEGRITY_PROBLEMS = 6

CommandHandler = Callable[["SQLitePromptStore", argparse.Namespace, logging.Logger], int]


@dataclass(frozen=True)
class CommandSpec:
    """Metadata for dispatching CLI command handlers."""

    handler: CommandHandler


def run_backup(store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Write a snapshot now."""
    try:
        info = store.create_backup()
    except BackupError as exc:
        logger.error("Backup failed: %s", exc)
        return EXIT_COMMAND_FAILED
    print_and_log(logger, logging.INFO, f"Backup written to {info.path} ({info.size_bytes} bytes)")
    return EXIT_OK


def run_list_backups(
    store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger
) -> int:
    """Print retained snapshots, newest first."""
    backups = store.list_backups()
    if not backups:
        print(f"No backups found in {store.backup_manager.backup_dir}")
        return EXIT_OK
    print(f"{len(backups)} backup(s) in {store.backup_manager.backup_dir}:")
    for info in backups:
        print(f"  {info.name}  {info.size_bytes:>10} bytes  {info.created_at:%Y-%m-%d %H:%M:%S}")
    return EXIT_OK


def run_restore(store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Replace the live data with a verified snapshot."""
    try:
        store.restore_backup(args.path)
    except BackupError as exc:
        logger.error("Restore failed: %s", exc)
        return EXIT_COMMAND_FAILED
    print_and_log(logger, logging.INFO, f"Restored prompt store from {args.path}")
    return EXIT_OK


def run_verify(store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Report integrity problems in the live database or a snapshot."""
    target = args.path
    try:
        problems = store.verify() if target is None else store.verify_backup(target)
    except PromptStoreError as exc:
        logger.error("Verification failed: %s", exc)
        return EXIT_COMMAND_FAILED
    label = "live database" if target is None else str(target)
    if problems:
        print_and_log(logger, logging.WARNING, f"Integrity problems in {label}:")
        for problem in problems:
            print(f"  - {problem}")
        return EXIT_INTEGRITY_PROBLEMS
    print_and_log(logger, logging.INFO, f"Integrity check passed for {label}")
    return EXIT_OK


def run_optimize(
    store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger
) -> int:
    """Compact the full-text index and refresh statistics."""
    try:
        store.optimize()
    except PromptStoreError as exc:
        logger.error("Optimize failed: %s", exc)
        return EXIT_COMMAND_FAILED
    print_and_log(logger, logging.INFO, "Prompt store optimized")
    return EXIT_OK


def run_search(store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Print ranked full-text matches."""
    results = store.search(args.query, limit=max(1, args.limit))
    if not results:
        print("No prompts matched.")
        return EXIT_OK
    for index, record in enumerate(results, start=1):
        preview = textwrap.shorten(record.text, width=96, placeholder="…")
        tags = f" [{', '.join(record.tags)}]" if record.tags else ""
        print(f"{index:>2}. {record.id} ({record.category}, rating {record.rating}){tags}")
        print(f"    {preview}")
    return EXIT_OK


def run_stats(store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Print catalogue counts, recent activity, and timing aggregates."""
    try:
        analytics = store.get_analytics(limit=7)
    except PromptStoreError as exc:
        logger.error("Unable to load statistics: %s", exc)
        return EXIT_COMMAND_FAILED
    performance = store.get_performance_stats()
    size = performance["storeSize"]
    print(f"Prompts: {analytics['totalPrompts']}")
    print(f"Database size: {format_metric(size['megabytes'], suffix=' MB')}")
    print(f"Last backup: {analytics['lastBackup'] or 'never'}")
    if analytics["byCategory"]:
        print("By category:")
        for category, total in analytics["byCategory"].items():
            print(f"  {category:<16} {total}")
    if analytics["daily"]:
        print("Recent activity (created / used / backups):")
        for entry in analytics["daily"]:
            print(
                f"  {entry['date']}  {entry['promptsCreated']:>4} / "
                f"{entry['promptsUsed']:>4} / {entry['backupCount']:>3}"
            )
    operations = performance["operations"]
    if operations:
        print("Operation timings (avg / max ms):")
        for name, stats in sorted(operations.items()):
            print(
                f"  {name:<16} {format_metric(stats['avg'])} / "
                f"{format_metric(stats['max'])} over {stats['count']}"
            )
    return EXIT_OK


def run_export(store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Write the full dataset to JSON or YAML."""
    fmt = resolve_export_format(args.path, args.format)
    try:
        payload = store.export_data()
    except PromptStoreError as exc:
        logger.error("Export failed: %s", exc)
        return EXIT_COMMAND_FAILED
    try:
        destination = write_payload(args.path, payload, fmt)
    except OSError as exc:
        logger.error("Unable to write export file %s: %s", args.path, exc)
        return EXIT_COMMAND_FAILED
    total = len(payload["records"])
    print_and_log(logger, logging.INFO, f"Exported {total} prompt(s) to {destination} ({fmt})")
    return EXIT_OK


def run_import(store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Add prompts from an export file."""
    try:
        payload = read_payload(args.path)
    except ValueError as exc:
        logger.error("%s", exc)
        return EXIT_INVALID_INPUT
    try:
        summary = store.import_data(payload)
    except PromptStoreError as exc:
        logger.error("Import failed: %s", exc)
        return EXIT_COMMAND_FAILED
    print_and_log(
        logger,
        logging.INFO,
        f"Imported {summary['imported']} prompt(s); skipped {summary['skipped']} existing.",
    )
    return EXIT_OK


def run_summary(store: SQLitePromptStore, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Default action when no command is given."""
    data = store.load_or_default()
    print(f"Prompt store at {store.repository.db_path}")
    print(f"  prompts: {data.metadata.get('totalPrompts', len(data.records))}")
    print(f"  custom folders: {len(data.custom_folders)}")
    print(f"  last backup: {data.settings.get('lastBackup') or 'never'}")
    print("Run with --help to list available commands.")
    return EXIT_OK


COMMAND_SPECS: dict[str | None, CommandSpec] = {
    None: CommandSpec(run_summary),
    "backup": CommandSpec(run_backup),
    "backups": CommandSpec(run_list_backups),
    "restore": CommandSpec(run_restore),
    "verify": CommandSpec(run_verify),
    "search": CommandSpec(run_search),
    "stats": CommandSpec(run_stats),
    "optimize": CommandSpec(run_optimize),
    "export": CommandSpec(run_export),
    "import": CommandSpec(run_import),
}


__all__ = [
    "COMMAND_SPECS",
    "EXIT_COMMAND_FAILED",
    "EXIT_INTEGRITY_PROBLEMS",
    "EXIT_INVALID_INPUT",
    "EXIT_OK",
    "CommandSpec",
]
