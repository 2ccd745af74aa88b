"""SQLite-backed repository for persistent prompt storage.

Updates:
  v0.2.0 - 2026-10-17 - Own a single long-lived connection opened on demand.
  v0.1.0 - 2026-10-17 - Compose prompt, search, taxonomy, analytics, and maintenance mixins.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

from .analytics import AnalyticsStoreMixin, DailyActivity
from .base import (
    RepositoryClosedError,
    RepositoryError,
    connect as _connect,
    ensure_directory as _ensure_directory,
    logger,
)
from .maintenance import SCHEMA_VERSION, RepositoryMaintenanceMixin, verify_database_file
from .prompts import PromptStoreMixin
from .search import FullTextSearchMixin, sanitize_query
from .taxonomy import DEFAULT_CATEGORIES, DEFAULT_FOLDERS, DEFAULT_SETTINGS, TaxonomyStoreMixin


class PromptRepository(
    RepositoryMaintenanceMixin,
    PromptStoreMixin,
    FullTextSearchMixin,
    TaxonomyStoreMixin,
    AnalyticsStoreMixin,
):
    """Compose repository mixins for SQLite-backed storage."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def open(self) -> PromptRepository:
        """Open the connection and ensure the schema exists; repeat calls are no-ops."""
        with self._lock:
            if self._conn is not None:
                return self
            try:
                _ensure_directory(self._db_path)
            except OSError as exc:
                raise RepositoryError(
                    f"Unable to create database directory for {self._db_path}"
                ) from exc
            try:
                conn = _connect(self._db_path)
            except sqlite3.Error as exc:
                raise RepositoryError(f"Unable to open database {self._db_path}") from exc
            try:
                self._ensure_schema(conn)
                self._seed_defaults(conn)
                conn.commit()
            except (sqlite3.Error, RepositoryError) as exc:
                conn.close()
                if isinstance(exc, RepositoryError):
                    raise
                raise RepositoryError("Failed to initialise SQLite schema") from exc
            self._conn = conn
        logger.debug("Opened prompt repository at %s", self._db_path)
        return self

    def close(self) -> None:
        """Close the connection; safe to call more than once."""
        with self._lock:
            conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to close database {self._db_path}") from exc
        logger.debug("Closed prompt repository at %s", self._db_path)

    def __enter__(self) -> PromptRepository:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "DEFAULT_CATEGORIES",
    "DEFAULT_FOLDERS",
    "DEFAULT_SETTINGS",
    "SCHEMA_VERSION",
    "DailyActivity",
    "PromptRepository",
    "RepositoryClosedError",
    "RepositoryError",
    "sanitize_query",
    "verify_database_file",
]
