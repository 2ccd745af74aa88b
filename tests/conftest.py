"""Pytest configuration for shared test fixtures and environment hooks.

Updates:
  v0.2.0 - 2026-10-17 - Provide repository, store, and record factory fixtures.
  v0.1.0 - 2026-10-17 - Isolate tests from PROMPT_STORE_* environment variables.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from core.backup import BackupManager
from core.repository import PromptRepository
from core.store import SQLitePromptStore
from models.prompt_record import PromptRecord

RecordFactory = Callable[..., PromptRecord]


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer configuration out of test runs."""
    for key in list(os.environ):
        if key.startswith("PROMPT_STORE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("PROMPT_STORE_ENV_FILE", "")


@pytest.fixture
def repository(tmp_path: Path) -> Iterator[PromptRepository]:
    repo = PromptRepository(tmp_path / "store.db").open()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[SQLitePromptStore]:
    repo = PromptRepository(tmp_path / "store.db")
    prompt_store = SQLitePromptStore(
        repo,
        backup_manager=BackupManager(repo, tmp_path / "backups", max_backups=3),
    )
    prompt_store.init()
    try:
        yield prompt_store
    finally:
        prompt_store.close()


@pytest.fixture
def make_record() -> RecordFactory:
    counter = iter(range(1, 1_000_000))

    def _factory(
        text: str = "Summarise the attached article in three bullet points",
        **fields: Any,
    ) -> PromptRecord:
        record_id = fields.pop("id", None) or f"prompt_test_{next(counter)}"
        return PromptRecord(id=record_id, text=text, **fields)

    return _factory
