"""Common exception classes for the prompt store.

All store failures inherit from :class:`PromptStoreError`, so callers can catch
one base class while still telling individual failure categories apart. Errors
raised on the read side (:class:`StoreInitError`, :class:`StoreLoadError`) are
meant to be recovered locally with default data; errors raised on the write
side (:class:`PersistError`, :class:`BackupError`) must reach the caller.

Updates:
  v0.2.0 - 2026-10-17 - Add duplicate detection and query syntax errors.
  v0.1.0 - 2026-10-17 - Created module with the store exception hierarchy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from models.prompt_record import PromptRecord


class PromptStoreError(Exception):
    """Base exception for prompt store failures."""


class DuplicateDetectedError(PromptStoreError):
    """Raised when an insert is refused because near-duplicates already exist."""

    def __init__(self, matches: Sequence[PromptRecord], message: str | None = None) -> None:
        self.matches: list[PromptRecord] = list(matches)
        ids = ", ".join(record.id for record in self.matches)
        super().__init__(message or f"Duplicate prompt detected (matches: {ids})")


class RecordValidationError(PromptStoreError, ValueError):
    """Raised when a record payload is malformed; nothing is persisted."""


class RecordNotFoundError(PromptStoreError):
    """Raised when a record required by an operation does not exist."""


class StoreInitError(PromptStoreError):
    """Raised when the backing database cannot be created or opened."""


class StoreLoadError(PromptStoreError):
    """Raised when the stored dataset cannot be read."""


class PersistError(PromptStoreError):
    """Raised when a write did not happen."""


class BackupError(PromptStoreError):
    """Raised when a snapshot cannot be written, verified, or restored."""


class QuerySyntaxError(PromptStoreError):
    """Raised by the full-text index when the engine rejects a query."""


__all__ = [
    "BackupError",
    "DuplicateDetectedError",
    "PersistError",
    "PromptStoreError",
    "QuerySyntaxError",
    "RecordNotFoundError",
    "RecordValidationError",
    "StoreInitError",
    "StoreLoadError",
]
