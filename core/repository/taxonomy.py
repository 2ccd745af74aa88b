"""Category, folder, and key/value settings persistence.

Updates:
  v0.1.1 - 2026-10-17 - Expose connection-level folder and category inserts for bulk imports.
  v0.1.0 - 2026-10-17 - Extract taxonomy and settings helpers into mixin.
"""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from models.prompt_record import format_timestamp, utc_now

from .base import (
    ConnectionOwnerMixin,
    RepositoryError,
    json_dumps as _json_dumps,
    json_loads_optional as _json_loads_optional,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "All",
    "Code",
    "Cognitive",
    "Jailbreak",
    "Dev",
    "Writing",
    "Business",
    "General",
    "Creative",
    "Analysis",
    "Research",
)
DEFAULT_FOLDERS: tuple[str, ...] = ("All", "Favorites", "Archive", "Default")
DEFAULT_SETTINGS: dict[str, Any] = {
    "autoCategorizationEnabled": True,
    "lastBackup": None,
}


class TaxonomyStoreMixin(ConnectionOwnerMixin):
    """Persist categories, folders, and settings."""

    def _seed_defaults(self, conn: sqlite3.Connection) -> None:
        """Insert built-in categories, folders, and settings that are missing."""
        now = format_timestamp(utc_now())
        conn.executemany(
            "INSERT OR IGNORE INTO categories (name, created_at) VALUES (?, ?);",
            [(name, now) for name in DEFAULT_CATEGORIES],
        )
        conn.executemany(
            "INSERT OR IGNORE INTO folders (name, is_custom, created_at) VALUES (?, 0, ?);",
            [(name, now) for name in DEFAULT_FOLDERS],
        )
        conn.executemany(
            "INSERT OR IGNORE INTO settings (key, value, updated_at) VALUES (?, ?, ?);",
            [(key, _json_dumps(value), now) for key, value in DEFAULT_SETTINGS.items()],
        )

    # Categories --------------------------------------------------------- #

    def list_categories(self) -> list[str]:
        try:
            with self._connection() as conn:
                rows = conn.execute("SELECT name FROM categories ORDER BY rowid;").fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to list categories") from exc
        return [str(row["name"]) for row in rows]

    def add_category(self, name: str) -> bool:
        """Add *name*; return False when it already exists."""
        label = name.strip()
        if not label:
            raise RepositoryError("Category name must not be empty")
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO categories (name, created_at) VALUES (?, ?);",
                    (label, format_timestamp(utc_now())),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to add category {label}") from exc
        return cursor.rowcount > 0

    def remove_category(self, name: str) -> bool:
        try:
            with self._transaction() as conn:
                cursor = conn.execute("DELETE FROM categories WHERE name = ?;", (name,))
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to remove category {name}") from exc
        return cursor.rowcount > 0

    # Folders ------------------------------------------------------------ #

    def list_folders(self, *, custom_only: bool = False) -> list[str]:
        query = "SELECT name FROM folders"
        if custom_only:
            query += " WHERE is_custom = 1"
        try:
            with self._connection() as conn:
                rows = conn.execute(query + " ORDER BY rowid;").fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to list folders") from exc
        return [str(row["name"]) for row in rows]

    def add_folder(self, name: str) -> bool:
        """Add a custom folder; return False when it already exists."""
        label = name.strip()
        if not label:
            raise RepositoryError("Folder name must not be empty")
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO folders (name, is_custom, created_at) VALUES (?, 1, ?);",
                    (label, format_timestamp(utc_now())),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to add folder {label}") from exc
        return cursor.rowcount > 0

    def add_folders(self, names: Iterable[str]) -> int:
        """Add several custom folders at once; return the number created."""
        try:
            with self._transaction() as conn:
                return self._insert_folders(conn, names)
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to add folders") from exc

    def _insert_folders(self, conn: sqlite3.Connection, names: Iterable[str]) -> int:
        now = format_timestamp(utc_now())
        created = 0
        for label in (name.strip() for name in names if name and name.strip()):
            cursor = conn.execute(
                "INSERT OR IGNORE INTO folders (name, is_custom, created_at) VALUES (?, 1, ?);",
                (label, now),
            )
            created += cursor.rowcount
        return created

    def _insert_categories(self, conn: sqlite3.Connection, names: Iterable[str]) -> int:
        now = format_timestamp(utc_now())
        created = 0
        for label in (name.strip() for name in names if name and name.strip()):
            cursor = conn.execute(
                "INSERT OR IGNORE INTO categories (name, created_at) VALUES (?, ?);",
                (label, now),
            )
            created += cursor.rowcount
        return created

    def remove_folder(self, name: str) -> bool:
        """Remove a custom folder; built-in folders are never removed."""
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM folders WHERE name = ? AND is_custom = 1;", (name,)
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to remove folder {name}") from exc
        return cursor.rowcount > 0

    # Settings ----------------------------------------------------------- #

    def get_settings(self) -> dict[str, Any]:
        try:
            with self._connection() as conn:
                rows = conn.execute("SELECT key, value FROM settings ORDER BY key;").fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to load settings") from exc
        return {str(row["key"]): _json_loads_optional(row["value"]) for row in rows}

    def get_setting(self, key: str, default: Any = None) -> Any:
        try:
            with self._connection() as conn:
                row = conn.execute("SELECT value FROM settings WHERE key = ?;", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to load setting {key}") from exc
        if row is None:
            return default
        return _json_loads_optional(row["value"])

    def set_settings(self, values: Mapping[str, Any]) -> None:
        """Upsert every key in *values* in one transaction."""
        now = format_timestamp(utc_now())
        try:
            with self._transaction() as conn:
                conn.executemany(
                    """
                    INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at;
                    """,
                    [(str(key), _json_dumps(value), now) for key, value in values.items()],
                )
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to save settings") from exc

    def set_setting(self, key: str, value: Any) -> None:
        self.set_settings({key: value})


__all__ = [
    "DEFAULT_CATEGORIES",
    "DEFAULT_FOLDERS",
    "DEFAULT_SETTINGS",
    "TaxonomyStoreMixin",
]
