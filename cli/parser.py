"""Argument parser for the prompt store CLI.

Updates:
  v0.1.1 - 2026-10-17 - Add the optimize maintenance command.
  v0.1.0 - 2026-10-17 - Backup, restore, verify, search, stats, export, and import commands.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    """Return the configured top-level argument parser."""
    parser = argparse.ArgumentParser(description="Prompt store maintenance tool")
    parser.add_argument(
        "--logging-config",
        type=Path,
        default=None,
        help="Path to logging configuration file (INI format)",
    )
    parser.add_argument(
        "--print-settings",
        action="store_true",
        help="Print resolved settings and exit",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("backup", help="Write a database snapshot now.")
    subparsers.add_parser("backups", help="List retained snapshots, newest first.")

    restore_parser = subparsers.add_parser(
        "restore",
        help="Replace the live data with a verified snapshot.",
    )
    restore_parser.add_argument("path", type=Path, help="Snapshot file to restore from.")

    verify_parser = subparsers.add_parser(
        "verify",
        help="Run an integrity check on the live database or a snapshot.",
    )
    verify_parser.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=None,
        help="Snapshot to check instead of the live database.",
    )

    search_parser = subparsers.add_parser("search", help="Full-text search over stored prompts.")
    search_parser.add_argument("query", type=str, help="Free text; punctuation is ignored.")
    search_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of results to display (default: 10).",
    )

    subparsers.add_parser("stats", help="Show record counts, activity, and timing metrics.")
    subparsers.add_parser(
        "optimize",
        help="Merge full-text index segments and refresh planner statistics.",
    )

    export_parser = subparsers.add_parser(
        "export",
        help="Export every prompt, folder, and setting to JSON or YAML.",
    )
    export_parser.add_argument("path", type=Path, help="Destination file path (.json or .yaml)")
    export_parser.add_argument(
        "--format",
        choices=("json", "yaml"),
        default=None,
        help="Explicit output format (defaults based on file extension).",
    )

    import_parser = subparsers.add_parser(
        "import",
        help="Add prompts from a JSON or YAML export, skipping ids already stored.",
    )
    import_parser.add_argument("path", type=Path, help="Export file to read.")

    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return parsed CLI arguments."""
    return build_parser().parse_args(argv)
