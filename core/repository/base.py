"""Shared repository helpers, connection handling, and error types.

Updates:
  v0.2.0 - 2026-10-17 - Hold one long-lived connection guarded by a re-entrant lock.
  v0.1.0 - 2026-10-17 - Extract logger, JSON helpers, and exceptions.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, cast

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from pathlib import Path

logger = logging.getLogger("prompt_store.repository")

BUSY_TIMEOUT_SECONDS = 30.0


class RepositoryError(Exception):
    """Base exception for repository failures."""


class RepositoryClosedError(RepositoryError):
    """Raised when an operation runs against a closed repository."""


def ensure_directory(path: Path) -> None:
    """Ensure the directory for the SQLite database exists."""
    path.parent.mkdir(parents=True, exist_ok=True)


def connect(db_path: Path) -> sqlite3.Connection:
    """Return a configured SQLite connection.

    Write-ahead logging lets readers on other connections proceed while a
    write transaction is open.
    """
    conn = sqlite3.connect(
        str(db_path),
        timeout=BUSY_TIMEOUT_SECONDS,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.execute("PRAGMA synchronous = NORMAL;")
    conn.execute("PRAGMA temp_store = MEMORY;")
    conn.execute("PRAGMA cache_size = -10000;")
    return conn


class ConnectionOwnerMixin:
    """Own the repository's single SQLite connection and its write lock."""

    _db_path: Path
    _conn: sqlite3.Connection | None
    _lock: threading.RLock

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield the open connection while holding the repository lock."""
        with self._lock:
            if self._conn is None:
                raise RepositoryClosedError(f"Repository at {self._db_path} is closed")
            yield self._conn

    @contextmanager
    def _transaction(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Run the block in one transaction, committing on success.

        ``immediate`` takes the database write lock up front, which bulk
        operations use so no other writer can interleave with them.
        """
        with self._connection() as conn:
            if immediate:
                conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()


def json_dumps(value: Any | None) -> str | None:
    """Serialize arbitrary values to JSON strings (or None)."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def json_loads_list(value: str | None) -> list[str]:
    """Deserialize JSON-encoded lists stored in SQLite into Python lists."""
    if value is None:
        return []
    if value in ("", "null"):
        return []
    try:
        parsed: object = json.loads(value)
    except json.JSONDecodeError:
        return [str(value)]
    if isinstance(parsed, list):
        entries = cast("Sequence[object]", parsed)
        return [str(item) for item in entries]
    return [str(parsed)]


def json_loads_optional(value: str | None) -> Any | None:
    """Deserialize JSON strings while tolerating plain-text fallbacks."""
    if value is None:
        return None
    if value in ("", "null"):
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


__all__ = [
    "BUSY_TIMEOUT_SECONDS",
    "ConnectionOwnerMixin",
    "RepositoryClosedError",
    "RepositoryError",
    "connect",
    "ensure_directory",
    "json_dumps",
    "json_loads_list",
    "json_loads_optional",
    "logger",
]
