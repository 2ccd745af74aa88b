"""Store facade combining persistence, search, duplicate checks, and backups.

Collaborators talk to :class:`PromptStore`; :class:`SQLitePromptStore` is the
only implementation. Repository failures are translated into the
:mod:`core.exceptions` taxonomy here and nowhere else.

Updates:
  v0.5.1 - 2026-10-17 - Commit analytics and import taxonomy in the same transaction as rows.
  v0.5.0 - 2026-10-17 - Hand out debounced autosave writers bound to ``save()``.
  v0.4.0 - 2026-10-17 - Add import/export, analytics, and performance summaries.
  v0.3.0 - 2026-10-17 - Add incremental CRUD with duplicate-checked inserts.
  v0.2.0 - 2026-10-17 - Measure every facade operation with the metrics collector.
  v0.1.0 - 2026-10-17 - Initial init/save/load/search/backup/close facade.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from models.prompt_record import PromptRecord, format_timestamp, utc_now

from .autosave import DEFAULT_DELAY_SECONDS, DebouncedWriter
from .backup import BackupManager
from .duplicates import DuplicateDetector
from .exceptions import (
    DuplicateDetectedError,
    PersistError,
    QuerySyntaxError,
    RecordNotFoundError,
    RecordValidationError,
    StoreInitError,
    StoreLoadError,
)
from .identifiers import IdentifierGenerator
from .metrics import MetricsCollector, OperationKind, store_size
from .repository import (
    DEFAULT_CATEGORIES,
    DEFAULT_FOLDERS,
    DEFAULT_SETTINGS,
    PromptRepository,
    RepositoryError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from .backup import BackupInfo, PeriodicBackupWorker

logger = logging.getLogger("prompt_store.store")

DATA_FORMAT_VERSION = "2.0.0"
ALL_SENTINEL = "All"


@dataclass(slots=True)
class StoreData:
    """Everything a collaborator needs to render the store."""

    records: list[PromptRecord] = field(default_factory=list)
    categories: list[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    folders: list[str] = field(default_factory=lambda: list(DEFAULT_FOLDERS))
    custom_folders: list[str] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SETTINGS))
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def default(cls) -> StoreData:
        """Return the empty dataset used when stored data cannot be read."""
        now = utc_now()
        return cls(metadata=_dataset_metadata(total=0, created=now, loaded=now))

    def to_payload(self) -> dict[str, Any]:
        return {
            "records": [record.to_payload() for record in self.records],
            "categories": list(self.categories),
            "folders": list(self.folders),
            "customFolders": list(self.custom_folders),
            "settings": dict(self.settings),
            "metadata": dict(self.metadata),
        }


def _dataset_metadata(*, total: int, created: Any, loaded: Any) -> dict[str, Any]:
    return {
        "version": DATA_FORMAT_VERSION,
        "created": format_timestamp(created),
        "totalPrompts": total,
        "lastLoaded": format_timestamp(loaded),
        "database": "sqlite",
    }


@runtime_checkable
class PromptStore(Protocol):
    """Lifecycle and bulk operations every store implementation provides."""

    def init(self) -> None: ...

    def save(self, records: Iterable[PromptRecord | Mapping[str, Any]]) -> None: ...

    def load(self) -> StoreData: ...

    def search(self, query: str, limit: int | None = None) -> list[PromptRecord]: ...

    def backup(self) -> Path: ...

    def close(self) -> None: ...


def _as_record(item: PromptRecord | Mapping[str, Any]) -> PromptRecord:
    if isinstance(item, PromptRecord):
        return item
    try:
        return PromptRecord.from_payload(item)
    except (TypeError, ValueError) as exc:
        raise RecordValidationError(f"Invalid prompt payload: {exc}") from exc


def _filter_value(filters: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = filters.get(key)
        if value not in (None, ""):
            return value
    return None


class SQLitePromptStore:
    """SQLite implementation of :class:`PromptStore` with incremental CRUD helpers."""

    def __init__(
        self,
        repository: PromptRepository,
        *,
        backup_manager: BackupManager | None = None,
        detector: DuplicateDetector | None = None,
        metrics: MetricsCollector | None = None,
        backup_worker: PeriodicBackupWorker | None = None,
        autosave_delay: float = DEFAULT_DELAY_SECONDS,
    ) -> None:
        self._repository = repository
        self._backups = backup_manager or BackupManager(
            repository, repository.db_path.parent / "backups"
        )
        self._detector = detector or DuplicateDetector()
        self.metrics = metrics or MetricsCollector()
        self._backup_worker = backup_worker
        self._autosave_delay = autosave_delay
        self._ids = IdentifierGenerator(repository.exists)
        self._closed = False

    @property
    def repository(self) -> PromptRepository:
        return self._repository

    @property
    def backup_manager(self) -> BackupManager:
        return self._backups

    @property
    def is_initialised(self) -> bool:
        return self._repository.is_open

    # Lifecycle ---------------------------------------------------------- #

    def init(self) -> None:
        """Open the database and prepare the schema; repeat calls are no-ops."""
        if self._repository.is_open:
            return
        with self.metrics.measure(OperationKind.INIT):
            try:
                self._repository.open()
            except RepositoryError as exc:
                raise StoreInitError(
                    f"Unable to initialise prompt store at {self._repository.db_path}"
                ) from exc
        self._closed = False
        if self._backup_worker is not None and not self._backup_worker.is_running:
            self._backup_worker.start()
        logger.info("Prompt store ready at %s", self._repository.db_path)

    def close(self) -> None:
        """Stop background work and close the database; safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._backup_worker is not None:
            self._backup_worker.stop()
        try:
            self._repository.close()
        except RepositoryError as exc:
            logger.warning("Prompt store did not close cleanly: %s", exc)
            return
        logger.info("Prompt store closed")

    def __enter__(self) -> SQLitePromptStore:
        self.init()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Bulk operations ---------------------------------------------------- #

    def save(self, records: Iterable[PromptRecord | Mapping[str, Any]]) -> None:
        """Replace the whole record set; on failure the previous set survives."""
        validated = [_as_record(item) for item in records]
        with self.metrics.measure(OperationKind.SAVE):
            try:
                self._repository.replace_all(validated)
            except RepositoryError as exc:
                raise PersistError(f"Failed to save {len(validated)} prompt(s)") from exc

    def load(self) -> StoreData:
        """Return every record together with taxonomy, settings, and metadata."""
        with self.metrics.measure(OperationKind.LOAD):
            try:
                records = self._repository.list_all()
                data = StoreData(
                    records=records,
                    categories=self._repository.list_categories(),
                    folders=self._repository.list_folders(),
                    custom_folders=self._repository.list_folders(custom_only=True),
                    settings=self._repository.get_settings(),
                )
            except RepositoryError as exc:
                raise StoreLoadError("Failed to load prompt store") from exc
        now = utc_now()
        created = min((record.created_at for record in records), default=now)
        data.metadata = _dataset_metadata(total=len(records), created=created, loaded=now)
        return data

    def autosaver(
        self, snapshot: Callable[[], Iterable[PromptRecord | Mapping[str, Any]]]
    ) -> DebouncedWriter:
        """Return a writer that saves ``snapshot()`` once a burst of edits goes quiet.

        The caller owns the writer and must ``close()`` it before closing the store.
        """
        return DebouncedWriter(lambda: self.save(snapshot()), delay=self._autosave_delay)

    def load_or_default(self) -> StoreData:
        """Return :meth:`load`, or the default dataset when it cannot be read."""
        try:
            return self.load()
        except StoreLoadError as exc:
            logger.warning("Falling back to default store data: %s", exc)
            return StoreData.default()

    def search(self, query: str, limit: int | None = None) -> list[PromptRecord]:
        """Return ranked matches for *query*; malformed queries yield no results."""
        with self.metrics.measure(OperationKind.SEARCH):
            try:
                return self._repository.search(query, limit=limit)
            except QuerySyntaxError:
                return []
            except RepositoryError as exc:
                logger.error("Search for %r failed: %s", query, exc)
                return []

    def backup(self) -> Path:
        """Write a snapshot now and return its path."""
        return self.create_backup().path

    def create_backup(self) -> BackupInfo:
        with self.metrics.measure(OperationKind.BACKUP):
            return self._backups.create_backup()

    def list_backups(self) -> list[BackupInfo]:
        return self._backups.list_backups()

    def verify_backup(self, path: Path) -> list[str]:
        return self._backups.verify_backup(Path(path))

    def restore_backup(self, path: Path) -> None:
        """Replace the live data with the snapshot at *path*."""
        with self.metrics.measure(OperationKind.RESTORE):
            self._backups.restore(Path(path))

    def verify(self) -> list[str]:
        """Return integrity problems in the live database (empty when healthy)."""
        try:
            return self._repository.integrity_check()
        except RepositoryError as exc:
            raise StoreLoadError("Unable to verify prompt store") from exc

    def optimize(self) -> None:
        """Merge index segments and refresh query planner statistics."""
        try:
            self._repository.optimize()
        except RepositoryError as exc:
            raise PersistError("Unable to optimize prompt store") from exc

    # Prompt CRUD -------------------------------------------------------- #

    def find_duplicates(self, text: str) -> list[PromptRecord]:
        with self.metrics.measure(OperationKind.DUPLICATE_CHECK):
            try:
                corpus = self._repository.list_all()
            except RepositoryError as exc:
                raise StoreLoadError("Unable to read prompts for duplicate check") from exc
            return self._detector.find_duplicates(text, corpus)

    def add_prompt(self, data: Mapping[str, Any], *, force: bool = False) -> PromptRecord:
        """Create a record from *data* with a fresh id and server timestamps.

        Raises :class:`DuplicateDetectedError` when existing records match,
        unless ``force`` is set, in which case the record is flagged with
        ``metadata.duplicate_override``.
        """
        payload = {
            key: value
            for key, value in data.items()
            if key not in {"id", "createdAt", "created_at", "updatedAt", "updated_at"}
        }
        text = payload.get("text")
        if not isinstance(text, str) or not text.strip():
            raise RecordValidationError("text must be a non-empty string")
        if not force:
            matches = self.find_duplicates(text)
            if matches:
                raise DuplicateDetectedError(matches)
        now = utc_now()
        try:
            record = PromptRecord.from_payload(payload, record_id=self._ids.new_id())
        except (TypeError, ValueError) as exc:
            raise RecordValidationError(f"Invalid prompt payload: {exc}") from exc
        record = dataclasses.replace(
            record,
            created_at=now,
            updated_at=now,
            metadata=dataclasses.replace(record.metadata, duplicate_override=force),
        )
        with self.metrics.measure(OperationKind.INSERT):
            try:
                self._repository.insert(record, count_created=True)
            except RepositoryError as exc:
                raise PersistError(f"Failed to add prompt {record.id}") from exc
        logger.debug("Prompt %s added (forced=%s)", record.id, force)
        return record

    def get_prompt(self, record_id: str) -> PromptRecord | None:
        try:
            return self._repository.get(record_id)
        except RepositoryError as exc:
            raise StoreLoadError(f"Failed to load prompt {record_id}") from exc

    def update_prompt(self, record_id: str, fields: Mapping[str, Any]) -> PromptRecord:
        """Merge *fields* into an existing record and return the stored result."""
        with self.metrics.measure(OperationKind.UPDATE):
            try:
                updated = self._repository.update(record_id, fields)
            except RepositoryError as exc:
                raise PersistError(f"Failed to update prompt {record_id}") from exc
        if updated is None:
            raise RecordNotFoundError(f"Prompt {record_id} not found")
        return updated

    def delete_prompt(self, record_id: str) -> PromptRecord:
        with self.metrics.measure(OperationKind.DELETE):
            try:
                removed = self._repository.delete(record_id)
            except RepositoryError as exc:
                raise PersistError(f"Failed to delete prompt {record_id}") from exc
        if removed is None:
            raise RecordNotFoundError(f"Prompt {record_id} not found")
        return removed

    def delete_prompts(self, record_ids: Iterable[str]) -> list[PromptRecord]:
        """Delete every listed record that exists; unknown ids are ignored."""
        with self.metrics.measure(OperationKind.DELETE):
            try:
                return self._repository.delete_many(record_ids)
            except RepositoryError as exc:
                raise PersistError("Failed to delete prompts") from exc

    def record_usage(self, record_id: str) -> PromptRecord:
        """Increment the usage counter of a record and count it in today's analytics."""
        with self.metrics.measure(OperationKind.UPDATE):
            try:
                updated = self._repository.increment_usage(record_id, count_used=True)
            except RepositoryError as exc:
                raise PersistError(f"Failed to record usage for {record_id}") from exc
        if updated is None:
            raise RecordNotFoundError(f"Prompt {record_id} not found")
        return updated

    def get_prompts(self, filters: Mapping[str, Any] | None = None) -> list[PromptRecord]:
        """Return records matching *filters*, newest first.

        Recognised keys: ``category`` and ``folder`` (``"All"`` means no
        filter), ``minRating``/``min_rating``, ``search`` (case-insensitive
        substring of text or notes), and ``tags`` (match any).
        """
        filters = filters or {}
        category = _filter_value(filters, "category")
        folder = _filter_value(filters, "folder")
        min_rating = _filter_value(filters, "minRating", "min_rating")
        if min_rating is not None:
            try:
                min_rating = int(min_rating)
            except (TypeError, ValueError) as exc:
                raise RecordValidationError(
                    f"minRating must be an integer, got {min_rating!r}"
                ) from exc
        with self.metrics.measure(OperationKind.LIST):
            try:
                records = self._repository.find_by_field(
                    category=None if category == ALL_SENTINEL else category,
                    folder=None if folder == ALL_SENTINEL else folder,
                    min_rating=min_rating,
                )
            except RepositoryError as exc:
                raise StoreLoadError("Failed to list prompts") from exc
        needle = _filter_value(filters, "search")
        if needle:
            lowered = str(needle).lower()
            records = [
                record
                for record in records
                if lowered in record.text.lower() or lowered in record.notes.lower()
            ]
        wanted = filters.get("tags")
        if wanted:
            if isinstance(wanted, str):
                wanted = [wanted]
            wanted_tags = {str(tag).strip().lower() for tag in wanted}
            records = [record for record in records if wanted_tags.intersection(record.tags)]
        return records

    def get_all_tags(self) -> list[str]:
        try:
            return self._repository.list_tags()
        except RepositoryError as exc:
            raise StoreLoadError("Failed to list tags") from exc

    # Taxonomy and settings --------------------------------------------- #

    def get_categories(self) -> list[str]:
        try:
            return self._repository.list_categories()
        except RepositoryError as exc:
            raise StoreLoadError("Failed to list categories") from exc

    def add_category(self, name: str) -> bool:
        try:
            return self._repository.add_category(name)
        except RepositoryError as exc:
            raise PersistError(f"Failed to add category {name!r}") from exc

    def remove_category(self, name: str) -> bool:
        try:
            return self._repository.remove_category(name)
        except RepositoryError as exc:
            raise PersistError(f"Failed to remove category {name!r}") from exc

    def get_folders(self, *, custom_only: bool = False) -> list[str]:
        try:
            return self._repository.list_folders(custom_only=custom_only)
        except RepositoryError as exc:
            raise StoreLoadError("Failed to list folders") from exc

    def add_folder(self, name: str) -> bool:
        try:
            return self._repository.add_folder(name)
        except RepositoryError as exc:
            raise PersistError(f"Failed to add folder {name!r}") from exc

    def remove_folder(self, name: str) -> bool:
        try:
            return self._repository.remove_folder(name)
        except RepositoryError as exc:
            raise PersistError(f"Failed to remove folder {name!r}") from exc

    def get_settings(self) -> dict[str, Any]:
        try:
            return self._repository.get_settings()
        except RepositoryError as exc:
            raise StoreLoadError("Failed to load settings") from exc

    def update_settings(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Upsert *values* and return the full settings map."""
        try:
            self._repository.set_settings(values)
            return self._repository.get_settings()
        except RepositoryError as exc:
            raise PersistError("Failed to save settings") from exc

    # Import / export ---------------------------------------------------- #

    def export_data(self) -> dict[str, Any]:
        """Return the full dataset as a JSON-serialisable mapping."""
        payload = self.load().to_payload()
        payload["metadata"]["exportedAt"] = format_timestamp(utc_now())
        return payload

    def import_data(self, payload: Mapping[str, Any]) -> dict[str, int]:
        """Add records from an exported payload, skipping ids already stored.

        Records are read from ``records`` (or the older ``prompts`` key).
        Records without an id receive a fresh one. Custom folders and
        categories are merged. Nothing is written if any record is invalid or
        any part of the import fails.
        """
        items = payload.get("records")
        if items is None:
            items = payload.get("prompts", [])
        if not isinstance(items, list):
            raise RecordValidationError("Import payload must contain a list of records")
        try:
            known_ids = self._repository.list_ids()
        except RepositoryError as exc:
            raise StoreLoadError("Unable to read existing prompt ids") from exc

        fresh: list[PromptRecord] = []
        skipped = 0
        for item in items:
            if not isinstance(item, dict):
                raise RecordValidationError("Each imported record must be an object")
            record_id = str(item.get("id") or "").strip()
            if record_id and record_id in known_ids:
                skipped += 1
                continue
            if not record_id:
                record_id = self._ids.new_id()
                while record_id in known_ids:
                    record_id = self._ids.new_id()
            try:
                record = PromptRecord.from_payload(item, record_id=record_id)
            except (TypeError, ValueError) as exc:
                raise RecordValidationError(f"Invalid imported record {record_id}: {exc}") from exc
            known_ids.add(record.id)
            fresh.append(record)

        folders = [str(name) for name in payload.get("customFolders") or []]
        categories = [str(name) for name in payload.get("categories") or []]
        with self.metrics.measure(OperationKind.INSERT):
            try:
                folders_added, categories_added = self._repository.import_records(
                    fresh, folders=folders, categories=categories
                )
            except RepositoryError as exc:
                raise PersistError("Failed to import prompts") from exc
        logger.info("Imported %s prompt(s), skipped %s existing", len(fresh), skipped)
        return {
            "imported": len(fresh),
            "skipped": skipped,
            "foldersAdded": folders_added,
            "categoriesAdded": categories_added,
        }

    # Reporting ---------------------------------------------------------- #

    def get_analytics(self, limit: int = 30) -> dict[str, Any]:
        """Return recent daily activity plus category and month breakdowns."""
        try:
            daily = self._repository.list_analytics(limit=limit)
            return {
                "totalPrompts": self._repository.count(),
                "daily": [entry.to_payload() for entry in daily],
                "byCategory": self._repository.category_breakdown(),
                "byMonth": self._repository.monthly_breakdown(),
                "lastBackup": self._repository.get_setting("lastBackup"),
            }
        except RepositoryError as exc:
            raise StoreLoadError("Failed to load analytics") from exc

    def get_performance_stats(self) -> dict[str, Any]:
        """Return per-operation timing aggregates and the current database size."""
        size = store_size(self._repository.db_path)
        return {
            "operations": {
                name: dataclasses.asdict(stats) for name, stats in self.metrics.stats().items()
            },
            "totalOperations": self.metrics.total_operations,
            "storeSize": {
                "bytes": size.bytes,
                "walBytes": size.wal_bytes,
                "megabytes": size.megabytes,
            },
        }


__all__ = [
    "ALL_SENTINEL",
    "DATA_FORMAT_VERSION",
    "PromptStore",
    "SQLitePromptStore",
    "StoreData",
]
