"""Core service layer for the prompt store.

Updates:
  v0.2.0 - 2026-10-17 - Export backup, autosave, and metrics helpers.
  v0.1.0 - 2026-10-17 - Surface the store facade, repository, and exception taxonomy.
"""

from .autosave import DebouncedWriter
from .backup import BackupInfo, BackupManager, PeriodicBackupWorker
from .duplicates import DuplicateDetector, fingerprint, jaccard_similarity
from .exceptions import (
    BackupError,
    DuplicateDetectedError,
    PersistError,
    PromptStoreError,
    QuerySyntaxError,
    RecordNotFoundError,
    RecordValidationError,
    StoreInitError,
    StoreLoadError,
)
from .factory import build_prompt_store
from .identifiers import IdentifierGenerator, generate_unique_id
from .metrics import MetricsCollector, OperationKind, OperationStats, StoreSize, store_size
from .repository import PromptRepository, RepositoryError
from .store import PromptStore, SQLitePromptStore, StoreData

__all__ = [
    "BackupError",
    "BackupInfo",
    "BackupManager",
    "DebouncedWriter",
    "DuplicateDetectedError",
    "DuplicateDetector",
    "IdentifierGenerator",
    "MetricsCollector",
    "OperationKind",
    "OperationStats",
    "PeriodicBackupWorker",
    "PersistError",
    "PromptRepository",
    "PromptStore",
    "PromptStoreError",
    "QuerySyntaxError",
    "RecordNotFoundError",
    "RecordValidationError",
    "RepositoryError",
    "SQLitePromptStore",
    "StoreData",
    "StoreInitError",
    "StoreLoadError",
    "StoreSize",
    "build_prompt_store",
    "fingerprint",
    "generate_unique_id",
    "jaccard_similarity",
    "store_size",
]
