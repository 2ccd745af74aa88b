"""Schema bootstrap and maintenance helpers for the repository.

Updates:
  v0.3.0 - 2026-10-17 - Add online-backup snapshot and restore primitives.
  v0.2.0 - 2026-10-17 - Keep the FTS5 index in lock-step through row triggers.
  v0.1.0 - 2026-10-17 - Extract schema management and integrity helpers.
"""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

from .base import ConnectionOwnerMixin, RepositoryError, logger

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from pathlib import Path

SCHEMA_VERSION = 1

# Tags are stored as a JSON array; the index sees them flattened to words.
_FLATTEN_TAGS = "(SELECT COALESCE(group_concat(value, ' '), '') FROM json_each({alias}.tags))"


class RepositoryMaintenanceMixin(ConnectionOwnerMixin):
    """Tasks that create, verify, snapshot, and restore repository storage."""

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        """Create required tables, indexes, and index triggers if they do not exist."""
        version_row = conn.execute("PRAGMA user_version;").fetchone()
        stored_version = int(version_row[0]) if version_row is not None else 0
        if stored_version > SCHEMA_VERSION:
            raise RepositoryError(
                f"Database schema version {stored_version} is newer than supported "
                f"version {SCHEMA_VERSION}; export and re-import the data instead."
            )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS prompts (
                id TEXT PRIMARY KEY,
                text TEXT NOT NULL CHECK (length(trim(text)) > 0),
                category TEXT NOT NULL DEFAULT 'General',
                tags TEXT NOT NULL DEFAULT '[]',
                folder TEXT NOT NULL DEFAULT 'Default',
                rating INTEGER NOT NULL DEFAULT 0 CHECK (rating BETWEEN 0 AND 5),
                usage_count INTEGER NOT NULL DEFAULT 0 CHECK (usage_count >= 0),
                notes TEXT NOT NULL DEFAULT '',
                source TEXT NOT NULL DEFAULT 'manual',
                confidence REAL NOT NULL DEFAULT 1.0,
                duplicate_override INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_prompts_category ON prompts(category);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_prompts_folder ON prompts(folder);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_prompts_rating ON prompts(rating);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_prompts_created ON prompts(created_at);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_prompts_updated ON prompts(updated_at);")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS categories (
                name TEXT PRIMARY KEY,
                created_at TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS folders (
                name TEXT PRIMARY KEY,
                is_custom INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS analytics (
                date TEXT PRIMARY KEY,
                prompts_created INTEGER NOT NULL DEFAULT 0,
                prompts_used INTEGER NOT NULL DEFAULT 0,
                backup_count INTEGER NOT NULL DEFAULT 0
            );
            """
        )
        conn.execute(
            """
            CREATE VIRTUAL TABLE IF NOT EXISTS prompts_fts USING fts5(
                text,
                notes,
                tags,
                tokenize = 'unicode61 remove_diacritics 2'
            );
            """
        )
        conn.execute(
            f"""
            CREATE TRIGGER IF NOT EXISTS prompts_fts_after_insert AFTER INSERT ON prompts BEGIN
                INSERT INTO prompts_fts(rowid, text, notes, tags)
                VALUES (new.rowid, new.text, new.notes, {_FLATTEN_TAGS.format(alias="new")});
            END;
            """
        )
        conn.execute(
            """
            CREATE TRIGGER IF NOT EXISTS prompts_fts_after_delete AFTER DELETE ON prompts BEGIN
                DELETE FROM prompts_fts WHERE rowid = old.rowid;
            END;
            """
        )
        conn.execute(
            f"""
            CREATE TRIGGER IF NOT EXISTS prompts_fts_after_update AFTER UPDATE ON prompts BEGIN
                DELETE FROM prompts_fts WHERE rowid = old.rowid;
                INSERT INTO prompts_fts(rowid, text, notes, tags)
                VALUES (new.rowid, new.text, new.notes, {_FLATTEN_TAGS.format(alias="new")});
            END;
            """
        )
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")

    def rebuild_index(self) -> int:
        """Re-derive every full-text entry from the current rows; return the row count."""
        try:
            with self._transaction(immediate=True) as conn:
                conn.execute("DELETE FROM prompts_fts;")
                conn.execute(
                    f"""
                    INSERT INTO prompts_fts(rowid, text, notes, tags)
                    SELECT p.rowid, p.text, p.notes, {_FLATTEN_TAGS.format(alias="p")}
                    FROM prompts AS p;
                    """
                )
                row = conn.execute("SELECT COUNT(*) FROM prompts_fts;").fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to rebuild full-text index") from exc
        indexed = int(row[0]) if row else 0
        logger.info("Full-text index rebuilt for %s prompt(s)", indexed)
        return indexed

    def integrity_check(self) -> list[str]:
        """Return integrity problems reported by SQLite (empty when healthy)."""
        try:
            with self._connection() as conn:
                rows = conn.execute("PRAGMA integrity_check;").fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Unable to verify SQLite repository") from exc
        return [str(row[0]) for row in rows if str(row[0]).lower() != "ok"]

    def optimize(self) -> None:
        """Refresh planner statistics and merge full-text index segments."""
        try:
            with self._connection() as conn:
                conn.execute("INSERT INTO prompts_fts(prompts_fts) VALUES ('optimize');")
                conn.commit()
                conn.execute("ANALYZE;")
                try:
                    conn.execute("PRAGMA optimize;")
                except sqlite3.Error as pragma_error:
                    logger.debug(
                        "PRAGMA optimize not supported by current SQLite build: %s",
                        pragma_error,
                    )
        except sqlite3.Error as exc:
            raise RepositoryError("Unable to optimize SQLite repository") from exc
        logger.info("SQLite repository optimization completed at %s", self._db_path)

    def snapshot_to(self, destination: Path) -> None:
        """Write a consistent point-in-time copy of the database to *destination*.

        Uses the SQLite online backup API while holding the repository lock,
        so no write from this process lands mid-copy.
        """
        try:
            target = sqlite3.connect(str(destination))
        except sqlite3.Error as exc:
            raise RepositoryError(f"Unable to open snapshot file {destination}") from exc
        try:
            with self._connection() as conn:
                conn.backup(target)
            target.execute("PRAGMA journal_mode = DELETE;")
        except sqlite3.Error as exc:
            raise RepositoryError(f"Unable to snapshot database to {destination}") from exc
        finally:
            target.close()

    def restore_from(self, source: Path) -> None:
        """Replace the live database contents with the snapshot at *source*."""
        try:
            snapshot = sqlite3.connect(f"{source.resolve().as_uri()}?mode=rw", uri=True)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Unable to open snapshot {source}") from exc
        try:
            with self._connection() as conn:
                snapshot.backup(conn)
                self._ensure_schema(conn)
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Unable to restore database from {source}") from exc
        finally:
            snapshot.close()


def verify_database_file(path: Path) -> list[str]:
    """Run ``PRAGMA integrity_check`` on a standalone database file."""
    try:
        conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=rw", uri=True)
    except sqlite3.Error as exc:
        raise RepositoryError(f"Unable to open database file {path}") from exc
    try:
        rows = conn.execute("PRAGMA integrity_check;").fetchall()
        conn.execute("SELECT COUNT(*) FROM prompts;").fetchone()
    except sqlite3.Error as exc:
        raise RepositoryError(f"Database file {path} is not a readable prompt store") from exc
    finally:
        conn.close()
    return [str(row[0]) for row in rows if str(row[0]).lower() != "ok"]


__all__ = ["RepositoryMaintenanceMixin", "SCHEMA_VERSION", "verify_database_file"]
