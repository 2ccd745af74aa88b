"""Tests for the rolling operation metrics collector.

Updates:
  v0.1.0 - 2026-10-17 - Cover window limits, aggregates, and slow-operation warnings.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from core.metrics import MetricsCollector, OperationKind, store_size


def test_window_keeps_only_latest_samples() -> None:
    collector = MetricsCollector(window=3)

    for duration in (1.0, 2.0, 3.0, 4.0, 5.0):
        collector.record(OperationKind.SAVE, duration)

    assert collector.samples(OperationKind.SAVE) == [3.0, 4.0, 5.0]
    assert collector.total_operations == 5


def test_stats_aggregate_per_operation_kind() -> None:
    collector = MetricsCollector()
    collector.record(OperationKind.LOAD, 2.0)
    collector.record(OperationKind.LOAD, 4.0)
    collector.record(OperationKind.SEARCH, 1.5)

    stats = collector.stats()

    assert set(stats) == {"load", "search"}
    assert stats["load"].avg == pytest.approx(3.0)
    assert (stats["load"].min, stats["load"].max, stats["load"].count) == (2.0, 4.0, 2)
    assert stats["search"].count == 1


def test_slow_operation_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    collector = MetricsCollector(slow_threshold_ms=10.0)

    with caplog.at_level("WARNING", logger="prompt_store.metrics"):
        collector.record(OperationKind.BACKUP, 5.0)
        assert caplog.records == []
        collector.record(OperationKind.BACKUP, 25.0)

    assert "Slow operation: backup took 25.00ms" in caplog.text


def test_measure_records_even_when_block_raises() -> None:
    collector = MetricsCollector()

    with pytest.raises(RuntimeError), collector.measure(OperationKind.INSERT):
        raise RuntimeError("boom")

    assert len(collector.samples(OperationKind.INSERT)) == 1


def test_reset_clears_samples() -> None:
    collector = MetricsCollector()
    collector.record(OperationKind.DELETE, 1.0)

    collector.reset()

    assert collector.stats() == {}
    assert collector.total_operations == 0


def test_store_size_handles_missing_and_present_files(tmp_path: Path) -> None:
    db_path = tmp_path / "store.db"
    assert store_size(db_path).bytes == 0

    db_path.write_bytes(b"x" * 2048)
    (tmp_path / "store.db-wal").write_bytes(b"y" * 100)

    size = store_size(db_path)
    assert (size.bytes, size.wal_bytes) == (2048, 100)
    assert size.megabytes == 0.0
