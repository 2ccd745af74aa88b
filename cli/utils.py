"""Shared CLI utility functions for prompt store commands.

Updates:
  v0.1.0 - 2026-10-17 - Stdout logging, path descriptions, export formats, and loaders.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from logging import Logger


def print_and_log(logger: Logger, level: int, message: str) -> None:
    """Log *message* at *level* and mirror it to stdout."""
    logger.log(level, message)
    print(message)


def describe_path(
    path_value: object,
    *,
    expect_directory: bool,
    allow_missing_file: bool = False,
) -> str:
    """Return a human-friendly description of *path_value* suitability."""
    if path_value is None:
        return "not set"
    resolved = Path(str(path_value)).expanduser()
    if resolved.exists():
        if expect_directory and not resolved.is_dir():
            return f"{resolved} (exists but is not a directory)"
        if not expect_directory and resolved.is_dir():
            return f"{resolved} (exists but is a directory)"
        return f"{resolved} (exists)"

    message = f"{resolved} (missing)"
    if allow_missing_file:
        message = f"{resolved} (missing - created on demand)"
    parent = resolved.parent
    if not parent.exists():
        message += f", parent missing: {parent}"
    return message


def resolve_export_format(path: Path, explicit_format: str | None) -> str:
    """Return an export format slug based on *path* or *explicit_format*."""
    if explicit_format:
        return explicit_format.lower()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        return "yaml"
    return "json"


def write_payload(path: Path, payload: dict[str, Any], fmt: str) -> Path:
    """Write *payload* as JSON or YAML and return the resolved destination."""
    resolved = path.expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with resolved.open("w", encoding="utf-8") as handle:
        if fmt == "yaml":
            yaml.safe_dump(payload, handle, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
            handle.write("\n")
    return resolved


def read_payload(path: Path) -> dict[str, Any]:
    """Read a JSON or YAML export; raise ValueError when it is not a mapping."""
    resolved = path.expanduser()
    try:
        content = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Unable to read {resolved}: {exc}") from exc
    try:
        if resolve_export_format(resolved, None) == "yaml":
            data = yaml.safe_load(content)
        else:
            data = json.loads(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"Invalid export file {resolved}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Export file {resolved} must contain an object at the top level")
    return data


def format_metric(value: float | None, *, suffix: str = "") -> str:
    """Return display-friendly metric text with optional *suffix*."""
    if value is None:
        return "n/a"
    formatted = f"{value:.2f}" if abs(value) < 1000 else f"{value:.0f}"
    return f"{formatted}{suffix}" if suffix else formatted
