"""Settings management utilities for prompt store configuration.

Updates:
  v0.2.0 - 2026-10-17 - Read ``.env`` values with python-dotenv without touching os.environ.
  v0.1.1 - 2026-10-17 - Derive the backup directory from the database path when unset.
  v0.1.0 - 2026-10-17 - Initial storage, backup, duplicate, and metrics settings.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger("prompt_store.settings")

_DOTENV_FALLBACK_PATH = ".env"
ENV_PREFIX = "PROMPT_STORE_"

DEFAULT_DB_PATH = Path("data") / "prompt_store.db"
DEFAULT_MAX_BACKUPS = 10
DEFAULT_DUPLICATE_THRESHOLD = 0.9
DEFAULT_DUPLICATE_MIN_TOKENS = 5
DEFAULT_SLOW_OPERATION_MS = 100.0
DEFAULT_METRICS_WINDOW = 100
DEFAULT_AUTOSAVE_DELAY_MS = 500

# Field name -> accepted environment keys (without prefix).
_ENV_KEYS: dict[str, list[str]] = {
    "db_path": ["DB_PATH", "DATABASE_PATH"],
    "backup_dir": ["BACKUP_DIR"],
    "max_backups": ["MAX_BACKUPS"],
    "backup_interval_minutes": ["BACKUP_INTERVAL_MINUTES"],
    "duplicate_threshold": ["DUPLICATE_THRESHOLD"],
    "duplicate_min_tokens": ["DUPLICATE_MIN_TOKENS"],
    "slow_operation_ms": ["SLOW_OPERATION_MS"],
    "metrics_window": ["METRICS_WINDOW"],
    "autosave_delay_ms": ["AUTOSAVE_DELAY_MS"],
}


def _read_dotenv_values() -> dict[str, str]:
    """Load ``.env`` entries into a mapping without mutating ``os.environ``."""
    env_file_override = os.getenv(f"{ENV_PREFIX}ENV_FILE")
    if env_file_override is not None:
        candidate = env_file_override.strip()
        if not candidate:
            return {}
        path = Path(candidate).expanduser()
    else:
        path = Path(_DOTENV_FALLBACK_PATH).expanduser()
    if not path.is_file():
        return {}
    raw_values = dotenv_values(str(path))
    return {str(key): str(value) for key, value in raw_values.items() if value is not None}


class SettingsError(Exception):
    """Raised when prompt store configuration cannot be loaded or validated."""


class PromptStoreSettings(BaseSettings):
    """Store configuration sourced from keyword overrides, JSON files, or the environment."""

    db_path: Path = Field(default=DEFAULT_DB_PATH, validate_default=True)
    backup_dir: Path | None = Field(
        default=None,
        description="Directory for snapshots; defaults to a 'backups' folder beside the database.",
    )
    max_backups: int = Field(default=DEFAULT_MAX_BACKUPS, ge=1)
    backup_interval_minutes: float = Field(
        default=0,
        ge=0,
        description="Minutes between automatic backups; 0 disables the periodic worker.",
    )
    duplicate_threshold: float = Field(default=DEFAULT_DUPLICATE_THRESHOLD)
    duplicate_min_tokens: int = Field(default=DEFAULT_DUPLICATE_MIN_TOKENS, ge=0)
    slow_operation_ms: float = Field(default=DEFAULT_SLOW_OPERATION_MS, gt=0)
    metrics_window: int = Field(default=DEFAULT_METRICS_WINDOW, ge=1)
    autosave_delay_ms: int = Field(default=DEFAULT_AUTOSAVE_DELAY_MS, ge=0)

    model_config = cast(
        "SettingsConfigDict",
        {
            "env_prefix": ENV_PREFIX,
            "case_sensitive": False,
            "populate_by_name": True,
            "extra": "ignore",
        },
    )

    @field_validator("db_path", "backup_dir", mode="before")
    def _normalise_path(cls, value: Any) -> Path | None:
        """Expand user-relative paths and coerce values to Path instances."""
        if value is None:
            return None
        text = str(value).strip()
        if not text:
            return None
        return Path(text).expanduser().resolve()

    @field_validator("duplicate_threshold")
    def _validate_threshold(cls, value: float) -> float:
        """Ensure the similarity threshold lies in (0, 1]."""
        if not 0.0 < value <= 1.0:
            raise ValueError("duplicate_threshold must be greater than 0 and at most 1")
        return value

    @model_validator(mode="after")
    def _default_backup_dir(self) -> PromptStoreSettings:
        if self.backup_dir is None:
            self.backup_dir = self.db_path.parent / "backups"
        return self

    @property
    def backup_interval_seconds(self) -> float:
        return self.backup_interval_minutes * 60

    @property
    def autosave_delay_seconds(self) -> float:
        return self.autosave_delay_ms / 1000

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
    ]:
        """Define configuration source precedence.

        Order (highest → lowest):
            1. Explicit keyword arguments (e.g. load_settings(max_backups=5)).
            2. JSON configuration file.
            3. Environment variables, then ``.env`` entries.
        """

        def env_with_dotenv(_: BaseSettings | None = None) -> dict[str, Any]:
            data: dict[str, Any] = {}
            dotenv_entries = _read_dotenv_values()

            def _lookup(candidate: str) -> str | None:
                value = os.getenv(candidate)
                if value is None:
                    value = dotenv_entries.get(candidate)
                if value is None:
                    return None
                stripped_value = str(value).strip()
                return stripped_value or None

            for field, keys in _ENV_KEYS.items():
                for key in keys:
                    value = _lookup(f"{ENV_PREFIX}{key}")
                    if value is not None:
                        data[field] = value
                        break
            return data

        return (
            init_settings,
            cls._json_config_settings_source(settings_cls),
            cast("PydanticBaseSettingsSource", env_with_dotenv),
        )

    @classmethod
    def _json_config_settings_source(
        cls,
        _: type[BaseSettings],
    ) -> PydanticBaseSettingsSource:
        """Return settings extracted from an optional JSON config file."""

        def _loader(_: BaseSettings | None = None) -> dict[str, Any]:
            explicit_path = os.getenv(f"{ENV_PREFIX}CONFIG_JSON")
            candidates: list[Path] = []
            if explicit_path:
                candidates.append(Path(explicit_path).expanduser())
            candidates.append(Path("config") / "config.json")

            for index, path in enumerate(candidates):
                if not path.exists():
                    if explicit_path and index == 0:
                        raise SettingsError(f"Configuration file not found: {path}")
                    continue
                try:
                    raw_contents = path.read_text(encoding="utf-8")
                except OSError as exc:  # pragma: no cover - filesystem failure is env-specific
                    raise SettingsError(f"Unable to read configuration file: {path}") from exc
                try:
                    data = json.loads(raw_contents)
                except json.JSONDecodeError as exc:
                    raise SettingsError(f"Invalid JSON in configuration file: {path}") from exc
                if not isinstance(data, dict):
                    raise SettingsError(f"Configuration file {path} must contain a JSON object")
                mapping_data = cast("Mapping[object, Any]", data)
                data_dict = {str(key): value for key, value in mapping_data.items()}
                if "database_path" in data_dict and "db_path" not in data_dict:
                    data_dict["db_path"] = data_dict.pop("database_path")
                unknown = sorted(set(data_dict) - set(_ENV_KEYS))
                if unknown:
                    logger.warning(
                        "Ignoring unknown key(s) %s in configuration file %s",
                        ", ".join(unknown),
                        path,
                    )
                return {key: value for key, value in data_dict.items() if key in _ENV_KEYS}
            return {}

        return cast("PydanticBaseSettingsSource", _loader)


def load_settings(**overrides: Any) -> PromptStoreSettings:
    """Return validated settings, raising SettingsError on failure."""
    try:
        return PromptStoreSettings(**overrides)
    except SettingsError:
        raise
    except ValidationError as exc:
        raise SettingsError("Invalid prompt store configuration") from exc


