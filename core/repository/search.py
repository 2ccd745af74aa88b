"""Ranked full-text search over prompt text, notes, and tags.

Updates:
  v0.1.0 - 2026-10-17 - FTS5 lookup with bm25 ranking and query sanitising.
"""

from __future__ import annotations

import re
import sqlite3
from typing import TYPE_CHECKING

from core.exceptions import QuerySyntaxError

from .base import ConnectionOwnerMixin, RepositoryError, logger

if TYPE_CHECKING:
    from models.prompt_record import PromptRecord

_UNSAFE = re.compile(r"[^\w\s]+", re.UNICODE)


def sanitize_query(query: str) -> str:
    """Reduce free text to a conjunction of quoted FTS5 terms.

    Punctuation is dropped so user input can never form FTS5 operators;
    an empty result means there is nothing to search for.
    """
    tokens = _UNSAFE.sub(" ", query or "").split()
    return " ".join(f'"{token}"' for token in tokens)


class FullTextSearchMixin(ConnectionOwnerMixin):
    """Query the ``prompts_fts`` index maintained by the schema triggers."""

    if TYPE_CHECKING:

        def _row_to_record(self, row: sqlite3.Row) -> PromptRecord: ...

    def search(self, query: str, limit: int | None = None) -> list[PromptRecord]:
        """Return prompts matching *query*, best match first.

        Queries that sanitise to nothing return an empty list. Engine syntax
        errors raise :class:`QuerySyntaxError`.
        """
        match = sanitize_query(query)
        if not match:
            return []
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    """
                    SELECT p.*
                    FROM prompts_fts
                    JOIN prompts AS p ON p.rowid = prompts_fts.rowid
                    WHERE prompts_fts MATCH ?
                    ORDER BY bm25(prompts_fts), p.updated_at DESC
                    LIMIT ?;
                    """,
                    (match, -1 if limit is None else max(1, int(limit))),
                ).fetchall()
        except sqlite3.OperationalError as exc:
            logger.debug("Full-text query %r rejected: %s", match, exc)
            raise QuerySyntaxError(f"Invalid search query: {query!r}") from exc
        except sqlite3.Error as exc:
            raise RepositoryError("Full-text search failed") from exc
        return [self._row_to_record(row) for row in rows]


__all__ = ["FullTextSearchMixin", "sanitize_query"]
