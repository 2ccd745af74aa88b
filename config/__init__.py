"""Configuration helpers for the prompt store.

Updates: v0.1.0 - 2026-10-17 - Expose settings loader and configuration error types.
"""

from .settings import (
    DEFAULT_DB_PATH,
    DEFAULT_DUPLICATE_THRESHOLD,
    DEFAULT_MAX_BACKUPS,
    ENV_PREFIX,
    PromptStoreSettings,
    SettingsError,
    load_settings,
)

__all__ = [
    "DEFAULT_DB_PATH",
    "DEFAULT_DUPLICATE_THRESHOLD",
    "DEFAULT_MAX_BACKUPS",
    "ENV_PREFIX",
    "PromptStoreSettings",
    "SettingsError",
    "load_settings",
]
