"""Tests for the SQLite prompt store facade.

Updates:
  v0.3.1 - 2026-10-17 - Cover rollback of bookkeeping failures and bad rating filters.
  v0.3.0 - 2026-10-17 - Cover import/export, analytics, and performance summaries.
  v0.2.0 - 2026-10-17 - Cover duplicate-checked inserts and filtered listing.
  v0.1.0 - 2026-10-17 - Cover lifecycle, bulk save/load, and search.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from core.backup import BackupManager
from core.exceptions import (
    DuplicateDetectedError,
    PersistError,
    RecordNotFoundError,
    RecordValidationError,
    StoreInitError,
    StoreLoadError,
)
from core.repository import DEFAULT_CATEGORIES, PromptRepository, RepositoryError
from core.store import DATA_FORMAT_VERSION, PromptStore, SQLitePromptStore, StoreData

if TYPE_CHECKING:
    from conftest import RecordFactory


def test_store_satisfies_protocol(store: SQLitePromptStore) -> None:
    assert isinstance(store, PromptStore)


def test_init_is_idempotent(tmp_path: Path) -> None:
    store = SQLitePromptStore(PromptRepository(tmp_path / "store.db"))

    store.init()
    store.init()

    assert store.is_initialised
    assert store.metrics.stats()["init"].count == 1
    assert store.backup_manager.backup_dir == tmp_path / "backups"
    store.close()
    store.close()
    assert not store.is_initialised


def test_init_failure_raises_store_init_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("occupied", encoding="utf-8")
    store = SQLitePromptStore(PromptRepository(blocker / "store.db"))

    with pytest.raises(StoreInitError):
        store.init()


def test_context_manager_opens_and_closes(tmp_path: Path) -> None:
    with SQLitePromptStore(PromptRepository(tmp_path / "store.db")) as store:
        assert store.is_initialised
    assert not store.is_initialised


def test_save_then_load_returns_same_records(
    store: SQLitePromptStore, make_record: RecordFactory
) -> None:
    records = [make_record(f"Prompt body number {n}", rating=n % 6) for n in range(5)]

    store.save(records)
    data = store.load()

    assert {r.id: r for r in data.records} == {r.id: r for r in records}
    assert data.categories == list(DEFAULT_CATEGORIES)
    assert data.metadata["totalPrompts"] == 5
    assert data.metadata["version"] == DATA_FORMAT_VERSION
    assert data.metadata["database"] == "sqlite"


def test_save_accepts_payload_mappings(store: SQLitePromptStore) -> None:
    store.save([{"id": "prompt_payload", "text": "From a mapping", "tags": ["X"]}])

    record = store.get_prompt("prompt_payload")
    assert record is not None
    assert record.tags == ["x"]


def test_invalid_rating_is_rejected_and_nothing_persisted(
    store: SQLitePromptStore, make_record: RecordFactory
) -> None:
    kept = make_record()
    store.save([kept])

    with pytest.raises(RecordValidationError):
        store.save(
            [
                {"id": "prompt_new", "text": "fine"},
                {"id": "prompt_bad", "text": "x", "rating": 6},
            ]
        )

    assert [r.id for r in store.load().records] == [kept.id]


def test_failed_save_keeps_previous_set(
    store: SQLitePromptStore, make_record: RecordFactory
) -> None:
    kept = make_record()
    store.save([kept])
    clash = make_record(id="prompt_dup")

    with pytest.raises(PersistError):
        store.save([clash, clash])

    assert [r.id for r in store.load().records] == [kept.id]


def test_load_or_default_falls_back(
    store: SQLitePromptStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(limit: int | None = None) -> list:
        raise RepositoryError("disk on fire")

    monkeypatch.setattr(store.repository, "list_all", broken)

    with pytest.raises(StoreLoadError):
        store.load()
    data = store.load_or_default()

    assert isinstance(data, StoreData)
    assert data.records == []
    assert data.settings == {"autoCategorizationEnabled": True, "lastBackup": None}
    assert data.metadata["totalPrompts"] == 0


def test_search_swallows_query_errors(store: SQLitePromptStore) -> None:
    store.add_prompt({"text": "Brainstorm podcast episode titles about space"})

    assert [r.text for r in store.search("podcast")] == [
        "Brainstorm podcast episode titles about space"
    ]
    assert store.search('"unterminated') == []
    assert store.search("") == []


def test_add_prompt_assigns_id_and_timestamps(store: SQLitePromptStore) -> None:
    record = store.add_prompt(
        {"id": "ignored", "text": "Plan a team offsite agenda", "createdAt": "2001-01-01T00:00:00Z"}
    )

    assert record.id.startswith("prompt_")
    assert record.id != "ignored"
    assert record.created_at.year != 2001
    assert store.get_prompt(record.id) == record
    assert store.get_analytics()["daily"][0]["promptsCreated"] == 1


def test_add_prompt_requires_text(store: SQLitePromptStore) -> None:
    with pytest.raises(RecordValidationError):
        store.add_prompt({"text": "   "})


def test_duplicate_insert_is_refused_unless_forced(store: SQLitePromptStore) -> None:
    original = store.add_prompt({"text": "Explain recursion to a child"})

    with pytest.raises(DuplicateDetectedError) as excinfo:
        store.add_prompt({"text": "explain   recursion to a CHILD"})
    assert [r.id for r in excinfo.value.matches] == [original.id]

    forced = store.add_prompt({"text": "explain   recursion to a CHILD"}, force=True)

    assert forced.metadata.duplicate_override
    assert store.get_prompt(forced.id) == forced
    assert store.repository.count() == 2


def test_update_and_delete_missing_records(store: SQLitePromptStore) -> None:
    with pytest.raises(RecordNotFoundError):
        store.update_prompt("prompt_missing", {"rating": 3})
    with pytest.raises(RecordNotFoundError):
        store.delete_prompt("prompt_missing")
    with pytest.raises(RecordNotFoundError):
        store.record_usage("prompt_missing")


def test_update_record_usage_and_delete(store: SQLitePromptStore) -> None:
    record = store.add_prompt({"text": "Turn these notes into a status update"})

    updated = store.update_prompt(record.id, {"rating": 4, "folder": "Favorites"})
    used = store.record_usage(record.id)

    assert (updated.rating, updated.folder) == (4, "Favorites")
    assert used.usage_count == 1
    assert store.get_analytics()["daily"][0]["promptsUsed"] == 1
    assert store.delete_prompt(record.id).id == record.id
    assert store.get_prompt(record.id) is None


def test_get_prompts_filters(store: SQLitePromptStore, make_record: RecordFactory) -> None:
    store.save(
        [
            make_record("Review this pull request", id="p1", category="Code", tags=["review"]),
            make_record("Write a product announcement", id="p2", category="Writing", rating=5),
            make_record(
                "Profile slow code",
                id="p3",
                category="Code",
                folder="Favorites",
                rating=3,
                notes="use cProfile",
            ),
        ]
    )

    def ids(filters: dict) -> set[str]:
        return {record.id for record in store.get_prompts(filters)}

    assert ids({}) == {"p1", "p2", "p3"}
    assert ids({"category": "All", "folder": "All"}) == {"p1", "p2", "p3"}
    assert ids({"category": "Code"}) == {"p1", "p3"}
    assert ids({"folder": "Favorites"}) == {"p3"}
    assert ids({"minRating": 4}) == {"p2"}
    assert ids({"search": "CPROFILE"}) == {"p3"}
    assert ids({"tags": ["Review", "other"]}) == {"p1"}
    assert store.get_all_tags() == ["review"]


def test_taxonomy_and_settings(store: SQLitePromptStore) -> None:
    assert store.add_category("Legal")
    assert store.add_folder("Drafts")
    assert "Legal" in store.get_categories()
    assert store.get_folders(custom_only=True) == ["Drafts"]

    settings = store.update_settings({"autoCategorizationEnabled": False})

    assert settings["autoCategorizationEnabled"] is False
    with pytest.raises(PersistError):
        store.add_folder("  ")


def test_export_then_import_skips_existing(tmp_path: Path, store: SQLitePromptStore) -> None:
    store.add_folder("Drafts")
    first = store.add_prompt({"text": "Compose a thank-you note for a mentor"})
    exported = store.export_data()

    assert exported["metadata"]["exportedAt"]
    assert exported["customFolders"] == ["Drafts"]

    with SQLitePromptStore(PromptRepository(tmp_path / "other" / "store.db")) as other:
        summary = other.import_data(exported)
        again = other.import_data(exported)

        assert summary == {"imported": 1, "skipped": 0, "foldersAdded": 1, "categoriesAdded": 0}
        assert again["imported"] == 0
        assert again["skipped"] == 1
        assert other.get_prompt(first.id) == first


def test_import_accepts_prompts_key_and_generates_ids(store: SQLitePromptStore) -> None:
    summary = store.import_data(
        {"prompts": [{"text": "Legacy prompt without id"}], "categories": ["Legacy"]}
    )

    assert summary["imported"] == 1
    assert summary["categoriesAdded"] == 1
    assert store.repository.count() == 1


def test_import_rejects_invalid_records_atomically(store: SQLitePromptStore) -> None:
    with pytest.raises(RecordValidationError):
        store.import_data({"records": [{"text": "ok"}, {"text": "bad", "rating": 11}]})
    with pytest.raises(RecordValidationError):
        store.import_data({"records": "nope"})

    assert store.repository.count() == 0


def test_backup_and_restore_through_facade(store: SQLitePromptStore) -> None:
    record = store.add_prompt({"text": "Suggest names for a hiking club"})
    path = store.backup()

    store.delete_prompt(record.id)
    assert store.verify_backup(path) == []
    store.restore_backup(path)

    assert store.get_prompt(record.id) == record
    assert [info.path for info in store.list_backups()] == [path]
    assert store.verify() == []


def test_performance_stats_shape(store: SQLitePromptStore) -> None:
    store.add_prompt({"text": "Generate test data for a users table"})
    store.search("users")

    stats = store.get_performance_stats()

    assert {"insert", "search", "duplicate_check"} <= set(stats["operations"])
    assert stats["operations"]["search"]["count"] == 1
    assert stats["totalOperations"] >= 3
    assert stats["storeSize"]["bytes"] + stats["storeSize"]["walBytes"] > 0


def test_backup_manager_can_be_injected(tmp_path: Path) -> None:
    repo = PromptRepository(tmp_path / "store.db")
    manager = BackupManager(repo, tmp_path / "elsewhere", max_backups=1)

    with SQLitePromptStore(repo, backup_manager=manager) as store:
        store.backup()
        store.backup()
        assert len(store.list_backups()) == 1


def test_autosaver_coalesces_edits_into_one_save(
    store: SQLitePromptStore, make_record: RecordFactory
) -> None:
    working_set = [make_record("First draft of a prompt")]
    saves: list[int] = []

    def snapshot() -> list:
        saves.append(len(working_set))
        return list(working_set)

    writer = store.autosaver(snapshot)
    writer.schedule()
    working_set.append(make_record("Second prompt added quickly"))
    writer.schedule()
    writer.close()

    assert saves == [2]
    assert store.repository.count() == 2


def test_failed_activity_counter_leaves_no_prompt(
    store: SQLitePromptStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(conn: sqlite3.Connection, **counts: object) -> None:
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store.repository, "_upsert_activity", broken)

    with pytest.raises(PersistError):
        store.add_prompt({"text": "Write a limerick about database transactions"})

    assert store.repository.count() == 0


def test_failed_usage_counter_keeps_usage_unchanged(
    store: SQLitePromptStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    record = store.add_prompt({"text": "Suggest a reading list on distributed systems"})

    def broken(conn: sqlite3.Connection, **counts: object) -> None:
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store.repository, "_upsert_activity", broken)

    with pytest.raises(PersistError):
        store.record_usage(record.id)

    stored = store.get_prompt(record.id)
    assert stored is not None
    assert stored.usage_count == 0


def test_failed_folder_merge_rolls_back_whole_import(
    store: SQLitePromptStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(conn: sqlite3.Connection, names: object) -> int:
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(store.repository, "_insert_folders", broken)

    with pytest.raises(PersistError):
        store.import_data(
            {
                "records": [{"text": "Imported prompt one"}, {"text": "Imported prompt two"}],
                "customFolders": ["Imported"],
            }
        )

    assert store.repository.count() == 0
    assert store.repository.list_analytics() == []
    monkeypatch.undo()
    assert store.get_folders(custom_only=True) == []


def test_non_numeric_min_rating_is_a_validation_error(store: SQLitePromptStore) -> None:
    with pytest.raises(RecordValidationError, match="minRating"):
        store.get_prompts({"minRating": "high"})
