"""Daily activity counters and catalogue breakdowns.

Updates:
  v0.1.1 - 2026-10-17 - Let other writes accumulate counters inside their own transaction.
  v0.1.0 - 2026-10-17 - Daily counters upserted per UTC date plus category/month breakdowns.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

from models.prompt_record import utc_now

from .base import ConnectionOwnerMixin, RepositoryError


@dataclass(slots=True, frozen=True)
class DailyActivity:
    """Counters accumulated for one UTC calendar day."""

    date: str
    prompts_created: int = 0
    prompts_used: int = 0
    backup_count: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "promptsCreated": self.prompts_created,
            "promptsUsed": self.prompts_used,
            "backupCount": self.backup_count,
        }


class AnalyticsStoreMixin(ConnectionOwnerMixin):
    """Record and summarise store activity."""

    def record_activity(
        self,
        *,
        created: int = 0,
        used: int = 0,
        backups: int = 0,
        date: str | None = None,
    ) -> None:
        """Add the given deltas to today's (or *date*'s) counters."""
        if not (created or used or backups):
            return
        day = date or utc_now().date().isoformat()
        try:
            with self._transaction() as conn:
                self._upsert_activity(conn, created=created, used=used, backups=backups, date=day)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to record activity for {day}") from exc

    def _upsert_activity(
        self,
        conn: sqlite3.Connection,
        *,
        created: int = 0,
        used: int = 0,
        backups: int = 0,
        date: str | None = None,
    ) -> None:
        """Accumulate counters on *conn*; the caller owns the transaction."""
        if not (created or used or backups):
            return
        conn.execute(
            """
            INSERT INTO analytics (date, prompts_created, prompts_used, backup_count)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(date) DO UPDATE SET
                prompts_created = prompts_created + excluded.prompts_created,
                prompts_used = prompts_used + excluded.prompts_used,
                backup_count = backup_count + excluded.backup_count;
            """,
            (date or utc_now().date().isoformat(), int(created), int(used), int(backups)),
        )

    def list_analytics(self, limit: int = 30) -> list[DailyActivity]:
        """Return the most recent daily counters, newest first."""
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT * FROM analytics ORDER BY date DESC LIMIT ?;",
                    (max(1, int(limit)),),
                ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to load analytics") from exc
        return [
            DailyActivity(
                date=str(row["date"]),
                prompts_created=int(row["prompts_created"]),
                prompts_used=int(row["prompts_used"]),
                backup_count=int(row["backup_count"]),
            )
            for row in rows
        ]

    def category_breakdown(self) -> dict[str, int]:
        """Return prompt counts per category, largest first."""
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT category, COUNT(*) AS total FROM prompts "
                    "GROUP BY category ORDER BY total DESC, category;"
                ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to compute category breakdown") from exc
        return {str(row["category"]): int(row["total"]) for row in rows}

    def monthly_breakdown(self) -> dict[str, int]:
        """Return prompt counts per creation month (``YYYY-MM``), oldest first."""
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT substr(created_at, 1, 7) AS month, COUNT(*) AS total "
                    "FROM prompts GROUP BY month ORDER BY month;"
                ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError("Failed to compute monthly breakdown") from exc
        return {str(row["month"]): int(row["total"]) for row in rows}


__all__ = ["AnalyticsStoreMixin", "DailyActivity"]
