"""Prompt record persistence and list helpers.

Updates:
  v0.4.0 - 2026-10-17 - Commit activity counters and import taxonomy with the rows they describe.
  v0.3.0 - 2026-10-17 - Add atomic bulk replacement under an immediate transaction.
  v0.2.0 - 2026-10-17 - Merge partial updates inside the write transaction.
  v0.1.0 - 2026-10-17 - Extract prompt CRUD helpers into mixin.
"""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any, ClassVar

from core.exceptions import RecordValidationError
from models.prompt_record import PromptRecord, RecordMetadata, format_timestamp, utc_now

from .base import (
    ConnectionOwnerMixin,
    RepositoryError,
    json_dumps as _json_dumps,
    json_loads_list as _json_loads_list,
    logger,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence


class PromptStoreMixin(ConnectionOwnerMixin):
    """Prompt row persistence helpers."""

    _COLUMNS: ClassVar[Sequence[str]] = (
        "id",
        "text",
        "category",
        "tags",
        "folder",
        "rating",
        "usage_count",
        "notes",
        "source",
        "confidence",
        "duplicate_override",
        "created_at",
        "updated_at",
    )

    if TYPE_CHECKING:

        def _upsert_activity(
            self,
            conn: sqlite3.Connection,
            *,
            created: int = 0,
            used: int = 0,
            backups: int = 0,
            date: str | None = None,
        ) -> None: ...

        def _insert_folders(self, conn: sqlite3.Connection, names: Iterable[str]) -> int: ...

        def _insert_categories(self, conn: sqlite3.Connection, names: Iterable[str]) -> int: ...

    # Prompt CRUD -------------------------------------------------------- #

    def insert(self, record: PromptRecord, *, count_created: bool = False) -> PromptRecord:
        """Insert a new prompt record; its id must not exist yet.

        With ``count_created`` today's ``prompts_created`` counter is bumped
        in the same transaction, so the row and the counter land together.
        """
        placeholders = ", ".join(f":{column}" for column in self._COLUMNS)
        query = f"INSERT INTO prompts ({', '.join(self._COLUMNS)}) VALUES ({placeholders});"
        try:
            with self._transaction() as conn:
                conn.execute(query, self._record_to_row(record))
                if count_created:
                    self._upsert_activity(conn, created=1)
        except sqlite3.IntegrityError as exc:
            raise RepositoryError(f"Prompt {record.id} already exists") from exc
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to insert prompt {record.id}") from exc
        return record

    def get(self, record_id: str) -> PromptRecord | None:
        """Fetch a prompt by id, or None when it does not exist."""
        try:
            with self._connection() as conn:
                row = conn.execute("SELECT * FROM prompts WHERE id = ?;", (record_id,)).fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to load prompt {record_id}") from exc
        if row is None:
            return None
        return self._row_to_record(row)

    def exists(self, record_id: str) -> bool:
        try:
            with self._connection() as conn:
                row = conn.execute("SELECT 1 FROM prompts WHERE id = ?;", (record_id,)).fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to look up prompt {record_id}") from exc
        return row is not None

    def update(self, record_id: str, fields: Mapping[str, Any]) -> PromptRecord | None:
        """Merge *fields* into the stored record and persist it.

        Returns None when the record does not exist. The read and the write
        happen in one transaction so concurrent updates cannot interleave.
        """
        assignments = ", ".join(f"{column} = :{column}" for column in self._COLUMNS[1:])
        try:
            with self._transaction(immediate=True) as conn:
                row = conn.execute("SELECT * FROM prompts WHERE id = ?;", (record_id,)).fetchone()
                if row is None:
                    return None
                current = self._row_to_record(row)
                try:
                    updated = current.merged(fields)
                except ValueError as exc:
                    raise RecordValidationError(str(exc)) from exc
                conn.execute(
                    f"UPDATE prompts SET {assignments} WHERE id = :id;",
                    self._record_to_row(updated),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to update prompt {record_id}") from exc
        return updated

    def increment_usage(
        self, record_id: str, amount: int = 1, *, count_used: bool = False
    ) -> PromptRecord | None:
        """Add *amount* to the usage counter and return the updated record.

        With ``count_used`` today's ``prompts_used`` counter moves in the
        same transaction.
        """
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "UPDATE prompts SET usage_count = usage_count + ?, updated_at = ? "
                    "WHERE id = ?;",
                    (max(0, amount), format_timestamp(utc_now()), record_id),
                )
                if cursor.rowcount == 0:
                    return None
                if count_used:
                    self._upsert_activity(conn, used=1)
                row = conn.execute("SELECT * FROM prompts WHERE id = ?;", (record_id,)).fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to record usage for prompt {record_id}") from exc
        return self._row_to_record(row)

    def delete(self, record_id: str) -> PromptRecord | None:
        """Delete a prompt and return the removed record (None when absent)."""
        try:
            with self._transaction() as conn:
                row = conn.execute("SELECT * FROM prompts WHERE id = ?;", (record_id,)).fetchone()
                if row is None:
                    return None
                conn.execute("DELETE FROM prompts WHERE id = ?;", (record_id,))
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to delete prompt {record_id}") from exc
        return self._row_to_record(row)

    def delete_many(self, record_ids: Iterable[str]) -> list[PromptRecord]:
        """Delete every listed prompt in one transaction; return the removed records."""
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return []
        removed: list[PromptRecord] = []
        try:
            with self._transaction() as conn:
                for record_id in ids:
                    row = conn.execute(
                        "SELECT * FROM prompts WHERE id = ?;", (record_id,)
                    ).fetchone()
                    if row is None:
                        continue
                    conn.execute("DELETE FROM prompts WHERE id = ?;", (record_id,))
                    removed.append(self._row_to_record(row))
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to delete prompts") from exc
        return removed

    def list_all(self, limit: int | None = None) -> list[PromptRecord]:
        """Return stored prompts, newest first."""
        query = "SELECT * FROM prompts ORDER BY created_at DESC, id"
        params: tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (int(limit),)
        try:
            with self._connection() as conn:
                rows = conn.execute(query + ";", params).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to list prompts") from exc
        return [self._row_to_record(row) for row in rows]

    def find_by_field(
        self,
        *,
        category: str | None = None,
        folder: str | None = None,
        min_rating: int | None = None,
    ) -> list[PromptRecord]:
        """Return prompts matching every supplied column filter, newest first."""
        clauses: list[str] = []
        params: list[Any] = []
        if category is not None:
            clauses.append("category = ?")
            params.append(category)
        if folder is not None:
            clauses.append("folder = ?")
            params.append(folder)
        if min_rating is not None:
            clauses.append("rating >= ?")
            params.append(int(min_rating))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    f"SELECT * FROM prompts{where} ORDER BY created_at DESC, id;",
                    params,
                ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to filter prompts") from exc
        return [self._row_to_record(row) for row in rows]

    def count(self) -> int:
        try:
            with self._connection() as conn:
                row = conn.execute("SELECT COUNT(*) FROM prompts;").fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to count prompts") from exc
        return int(row[0]) if row else 0

    def list_ids(self) -> set[str]:
        try:
            with self._connection() as conn:
                rows = conn.execute("SELECT id FROM prompts;").fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to list prompt ids") from exc
        return {str(row["id"]) for row in rows}

    def list_tags(self) -> list[str]:
        """Return every distinct tag in use, sorted alphabetically."""
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT DISTINCT value FROM prompts, json_each(prompts.tags) ORDER BY value;"
                ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to list tags") from exc
        return [str(row[0]) for row in rows]

    # Bulk writes -------------------------------------------------------- #

    def insert_many(self, records: Sequence[PromptRecord]) -> int:
        """Insert *records* in one transaction; no row is written if any fails."""
        placeholders = ", ".join(f":{column}" for column in self._COLUMNS)
        query = f"INSERT INTO prompts ({', '.join(self._COLUMNS)}) VALUES ({placeholders});"
        try:
            with self._transaction(immediate=True) as conn:
                conn.executemany(query, [self._record_to_row(record) for record in records])
        except sqlite3.IntegrityError as exc:
            raise RepositoryError("Bulk insert rejected a duplicate or invalid prompt") from exc
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to insert prompts") from exc
        return len(records)

    def import_records(
        self,
        records: Sequence[PromptRecord],
        *,
        folders: Iterable[str] = (),
        categories: Iterable[str] = (),
    ) -> tuple[int, int]:
        """Insert *records* and merge custom folders and categories in one transaction.

        Today's ``prompts_created`` counter grows by the number of records.
        Returns ``(folders_added, categories_added)``; on any failure nothing
        is written.
        """
        placeholders = ", ".join(f":{column}" for column in self._COLUMNS)
        query = f"INSERT INTO prompts ({', '.join(self._COLUMNS)}) VALUES ({placeholders});"
        try:
            with self._transaction(immediate=True) as conn:
                conn.executemany(query, [self._record_to_row(record) for record in records])
                self._upsert_activity(conn, created=len(records))
                folders_added = self._insert_folders(conn, folders)
                categories_added = self._insert_categories(conn, categories)
        except sqlite3.IntegrityError as exc:
            raise RepositoryError("Import rejected a duplicate or invalid prompt") from exc
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to import prompts") from exc
        return folders_added, categories_added

    def replace_all(self, records: Sequence[PromptRecord]) -> int:
        """Atomically replace the whole prompt table with *records*.

        Either every record is written or the previous contents survive
        untouched; the index triggers run inside the same transaction.
        """
        placeholders = ", ".join(f":{column}" for column in self._COLUMNS)
        query = f"INSERT INTO prompts ({', '.join(self._COLUMNS)}) VALUES ({placeholders});"
        rows = [self._record_to_row(record) for record in records]
        try:
            with self._transaction(immediate=True) as conn:
                conn.execute("DELETE FROM prompts;")
                conn.executemany(query, rows)
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to replace prompt set; previous data kept") from exc
        logger.debug("Replaced prompt table with %s record(s)", len(rows))
        return len(rows)

    # Serialization helpers --------------------------------------------- #

    def _record_to_row(self, record: PromptRecord) -> dict[str, Any]:
        return {
            "id": record.id,
            "text": record.text,
            "category": record.category,
            "tags": _json_dumps(list(record.tags)),
            "folder": record.folder,
            "rating": record.rating,
            "usage_count": record.usage_count,
            "notes": record.notes,
            "source": record.metadata.source,
            "confidence": record.metadata.confidence,
            "duplicate_override": int(record.metadata.duplicate_override),
            "created_at": format_timestamp(record.created_at),
            "updated_at": format_timestamp(record.updated_at),
        }

    def _row_to_record(self, row: sqlite3.Row) -> PromptRecord:
        try:
            return PromptRecord(
                id=row["id"],
                text=row["text"],
                category=row["category"],
                tags=_json_loads_list(row["tags"]),
                folder=row["folder"],
                rating=row["rating"],
                usage_count=row["usage_count"],
                notes=row["notes"],
                metadata=RecordMetadata(
                    source=row["source"],
                    confidence=row["confidence"],
                    duplicate_override=bool(row["duplicate_override"]),
                ),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
        except ValueError as exc:
            raise RepositoryError(f"Stored prompt {row['id']} is malformed: {exc}") from exc


__all__ = ["PromptStoreMixin"]
