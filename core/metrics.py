"""Advisory timing metrics for store operations.

Durations are kept per :class:`OperationKind` in fixed-size ring buffers, so
memory stays bounded however long the process runs. Recording never raises
into, or changes the outcome of, the measured operation.

Updates:
  v0.1.1 - 2026-10-17 - Report WAL sidecar size alongside the database file.
  v0.1.0 - 2026-10-17 - Initial collector with slow-operation warnings.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger("prompt_store.metrics")

DEFAULT_WINDOW = 100
DEFAULT_SLOW_THRESHOLD_MS = 100.0


class OperationKind(str, Enum):
    """Closed set of measured store operations."""

    INIT = "init"
    LOAD = "load"
    SAVE = "save"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    SEARCH = "search"
    DUPLICATE_CHECK = "duplicate_check"
    BACKUP = "backup"
    RESTORE = "restore"


@dataclass(slots=True, frozen=True)
class OperationStats:
    """Aggregate durations (milliseconds) for one operation kind."""

    avg: float
    min: float
    max: float
    count: int


@dataclass(slots=True, frozen=True)
class StoreSize:
    """Point-in-time size of the database file and its write-ahead log."""

    bytes: int
    wal_bytes: int = 0

    @property
    def megabytes(self) -> float:
        return round(self.bytes / 1024 / 1024, 2)


def store_size(db_path: Path) -> StoreSize:
    """Return the on-disk size of *db_path*; missing files count as zero."""
    try:
        main_size = db_path.stat().st_size
    except OSError:
        return StoreSize(bytes=0)
    wal_path = db_path.with_name(db_path.name + "-wal")
    try:
        wal_size = wal_path.stat().st_size
    except OSError:
        wal_size = 0
    return StoreSize(bytes=main_size, wal_bytes=wal_size)


class MetricsCollector:
    """Rolling per-operation duration windows with slow-operation warnings."""

    def __init__(
        self,
        *,
        window: int = DEFAULT_WINDOW,
        slow_threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS,
    ) -> None:
        self.window = max(1, window)
        self.slow_threshold_ms = slow_threshold_ms
        self._samples: dict[OperationKind, deque[float]] = {
            kind: deque(maxlen=self.window) for kind in OperationKind
        }
        self._total = 0
        self._lock = threading.Lock()

    @property
    def total_operations(self) -> int:
        """Number of samples recorded since creation (not capped by the window)."""
        return self._total

    def record(self, kind: OperationKind, duration_ms: float) -> None:
        """Store *duration_ms* for *kind* and warn when it exceeds the threshold."""
        with self._lock:
            self._samples[kind].append(duration_ms)
            self._total += 1
        if duration_ms > self.slow_threshold_ms:
            logger.warning("Slow operation: %s took %.2fms", kind.value, duration_ms)

    @contextmanager
    def measure(self, kind: OperationKind) -> Iterator[None]:
        """Time the wrapped block and record it, whether or not it raises."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.record(kind, (time.perf_counter() - started) * 1000)

    def samples(self, kind: OperationKind) -> list[float]:
        with self._lock:
            return list(self._samples[kind])

    def stats(self) -> dict[str, OperationStats]:
        """Return aggregates for every operation kind with at least one sample."""
        with self._lock:
            snapshot = {kind: list(values) for kind, values in self._samples.items() if values}
        return {
            kind.value: OperationStats(
                avg=sum(values) / len(values),
                min=min(values),
                max=max(values),
                count=len(values),
            )
            for kind, values in snapshot.items()
        }

    def reset(self) -> None:
        with self._lock:
            for values in self._samples.values():
                values.clear()
            self._total = 0


__all__ = [
    "DEFAULT_SLOW_THRESHOLD_MS",
    "DEFAULT_WINDOW",
    "MetricsCollector",
    "OperationKind",
    "OperationStats",
    "StoreSize",
    "store_size",
]
