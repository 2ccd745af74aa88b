"""Tests for the SQLite prompt repository.

Updates:
  v0.2.1 - 2026-10-17 - Cover atomic imports and counters written with their rows.
  v0.2.0 - 2026-10-17 - Cover bulk replace rollback, taxonomy seeds, and analytics counters.
  v0.1.0 - 2026-10-17 - Cover connection pragmas and record CRUD.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from core.exceptions import RecordValidationError
from core.repository import (
    DEFAULT_CATEGORIES,
    DEFAULT_FOLDERS,
    SCHEMA_VERSION,
    PromptRepository,
    RepositoryClosedError,
    RepositoryError,
)
from core.repository.base import connect

if TYPE_CHECKING:
    from conftest import RecordFactory


def test_connection_uses_write_ahead_logging(tmp_path: Path) -> None:
    conn = connect(tmp_path / "pragmas.db")
    try:
        assert conn.execute("PRAGMA journal_mode;").fetchone()[0] == "wal"
        assert conn.execute("PRAGMA foreign_keys;").fetchone()[0] == 1
        assert conn.execute("PRAGMA synchronous;").fetchone()[0] == 1
    finally:
        conn.close()


def test_open_is_idempotent_and_close_blocks_access(tmp_path: Path) -> None:
    repo = PromptRepository(tmp_path / "nested" / "store.db")

    assert repo.open() is repo.open()
    assert repo.db_path.exists()
    repo.close()
    repo.close()

    assert not repo.is_open
    with pytest.raises(RepositoryClosedError):
        repo.count()


def test_newer_schema_version_is_refused(tmp_path: Path) -> None:
    db_path = tmp_path / "future.db"
    conn = sqlite3.connect(db_path)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1};")
    conn.close()

    with pytest.raises(RepositoryError, match="newer than supported"):
        PromptRepository(db_path).open()


def test_insert_and_get_round_trip(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    record = make_record(tags=["writing", "summary"], rating=4, notes="keep short")

    repository.insert(record)

    assert repository.get(record.id) == record
    assert repository.exists(record.id)
    assert repository.get("prompt_missing") is None


def test_insert_existing_id_fails(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    record = repository.insert(make_record())

    with pytest.raises(RepositoryError, match="already exists"):
        repository.insert(record)


def test_update_merges_fields(repository: PromptRepository, make_record: RecordFactory) -> None:
    record = repository.insert(make_record())

    updated = repository.update(record.id, {"text": "Rewrite as a haiku", "rating": 5})

    assert updated is not None
    assert (updated.text, updated.rating) == ("Rewrite as a haiku", 5)
    assert updated.updated_at >= record.updated_at
    assert repository.get(record.id) == updated
    assert repository.update("prompt_missing", {"rating": 1}) is None


def test_update_rejects_invalid_fields(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    record = repository.insert(make_record())

    with pytest.raises(RecordValidationError):
        repository.update(record.id, {"rating": 9})

    assert repository.get(record.id) == record


def test_increment_usage(repository: PromptRepository, make_record: RecordFactory) -> None:
    record = repository.insert(make_record())

    repository.increment_usage(record.id)
    bumped = repository.increment_usage(record.id, amount=2)

    assert bumped is not None
    assert bumped.usage_count == 3
    assert repository.increment_usage("prompt_missing") is None


def test_delete_and_delete_many(repository: PromptRepository, make_record: RecordFactory) -> None:
    first, second, third = (repository.insert(make_record()) for _ in range(3))

    assert repository.delete(first.id) == first
    assert repository.delete(first.id) is None

    removed = repository.delete_many([second.id, "prompt_missing", third.id])

    assert {record.id for record in removed} == {second.id, third.id}
    assert repository.count() == 0


def test_list_all_and_filters(repository: PromptRepository, make_record: RecordFactory) -> None:
    repository.insert(make_record(category="Code", folder="Favorites", rating=5))
    repository.insert(make_record(category="Code", rating=2))
    repository.insert(make_record(category="Writing", folder="Favorites", rating=4))

    assert len(repository.list_all()) == 3
    assert len(repository.list_all(limit=2)) == 2
    assert len(repository.find_by_field(category="Code")) == 2
    assert len(repository.find_by_field(folder="Favorites", min_rating=5)) == 1
    assert len(repository.find_by_field(min_rating=3)) == 2


def test_list_ids_and_tags(repository: PromptRepository, make_record: RecordFactory) -> None:
    a = repository.insert(make_record(tags=["python", "data"]))
    b = repository.insert(make_record(tags=["data", "ml"]))

    assert repository.list_ids() == {a.id, b.id}
    assert repository.list_tags() == ["data", "ml", "python"]


def test_replace_all_swaps_the_record_set(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    repository.insert(make_record())
    replacement = [make_record(text=f"Replacement prompt number {n}") for n in range(4)]

    assert repository.replace_all(replacement) == 4

    assert {record.id for record in repository.list_all()} == {r.id for r in replacement}


def test_replace_all_failure_keeps_previous_data(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    original = repository.insert(make_record())
    clash = make_record(id="prompt_clash")

    with pytest.raises(RepositoryError, match="previous data kept"):
        repository.replace_all([clash, make_record(), clash])

    assert repository.list_all() == [original]
    assert [r.id for r in repository.search("article")] == [original.id]


def test_insert_many_is_all_or_nothing(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    existing = repository.insert(make_record())

    with pytest.raises(RepositoryError):
        repository.insert_many([make_record(), existing])

    assert repository.count() == 1
    assert repository.insert_many([make_record(), make_record()]) == 2
    assert repository.count() == 3


def test_defaults_are_seeded_once(tmp_path: Path) -> None:
    db_path = tmp_path / "seeded.db"
    with PromptRepository(db_path).open() as repo:
        assert repo.list_categories() == list(DEFAULT_CATEGORIES)
        assert repo.list_folders() == list(DEFAULT_FOLDERS)
        assert repo.get_settings() == {"autoCategorizationEnabled": True, "lastBackup": None}
        repo.set_setting("autoCategorizationEnabled", False)

    with PromptRepository(db_path).open() as repo:
        assert repo.list_categories() == list(DEFAULT_CATEGORIES)
        assert repo.get_setting("autoCategorizationEnabled") is False


def test_categories_and_custom_folders(repository: PromptRepository) -> None:
    assert repository.add_category("  Legal ")
    assert not repository.add_category("Legal")
    assert "Legal" in repository.list_categories()
    assert repository.remove_category("Legal")

    assert repository.add_folder("Drafts")
    assert repository.add_folders(["Drafts", "Ideas", " "]) == 1
    assert repository.list_folders(custom_only=True) == ["Drafts", "Ideas"]
    assert not repository.remove_folder("Archive")
    assert repository.remove_folder("Ideas")

    with pytest.raises(RepositoryError):
        repository.add_category("   ")


def test_settings_store_json_values(repository: PromptRepository) -> None:
    repository.set_settings({"theme": {"mode": "dark"}, "pageSize": 25})

    assert repository.get_setting("theme") == {"mode": "dark"}
    assert repository.get_setting("pageSize") == 25
    assert repository.get_setting("absent", "fallback") == "fallback"


def test_activity_counters_accumulate(repository: PromptRepository) -> None:
    repository.record_activity(created=2, date="2026-10-16")
    repository.record_activity(created=1, used=3, date="2026-10-16")
    repository.record_activity(backups=1, date="2026-10-17")
    repository.record_activity(date="2026-10-18")

    days = repository.list_analytics()

    assert [day.date for day in days] == ["2026-10-17", "2026-10-16"]
    assert days[1].to_payload() == {
        "date": "2026-10-16",
        "promptsCreated": 3,
        "promptsUsed": 3,
        "backupCount": 0,
    }


def test_breakdowns(repository: PromptRepository, make_record: RecordFactory) -> None:
    repository.insert(make_record(category="Code", created_at="2026-09-01T00:00:00Z"))
    repository.insert(make_record(category="Code", created_at="2026-10-01T00:00:00Z"))
    repository.insert(make_record(category="Writing", created_at="2026-10-02T00:00:00Z"))

    assert repository.category_breakdown() == {"Code": 2, "Writing": 1}
    assert repository.monthly_breakdown() == {"2026-09": 1, "2026-10": 2}


def test_integrity_check_and_optimize(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    repository.insert(make_record())

    assert repository.integrity_check() == []
    repository.optimize()
    assert repository.count() == 1


def test_import_records_merges_taxonomy_and_counts(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    added = repository.import_records(
        [make_record(), make_record()],
        folders=["Drafts", " ", "Archive"],
        categories=["Legal", "Code"],
    )

    assert added == (1, 1)
    assert repository.count() == 2
    assert repository.list_folders(custom_only=True) == ["Drafts"]
    assert repository.list_analytics()[0].prompts_created == 2


def test_insert_and_usage_counters_share_the_row_transaction(
    repository: PromptRepository, make_record: RecordFactory
) -> None:
    record = repository.insert(make_record(), count_created=True)
    repository.increment_usage(record.id, count_used=True)
    repository.increment_usage(record.id)

    today = repository.list_analytics()[0]
    assert (today.prompts_created, today.prompts_used) == (1, 1)
