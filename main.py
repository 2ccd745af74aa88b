"""Application entry point for the prompt store CLI.

Updates:
  v0.1.1 - 2026-10-17 - Always open the store before dispatching a command.
  v0.1.0 - 2026-10-17 - Wire settings, logging, store construction, and command dispatch.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cli.commands import COMMAND_SPECS
from cli.parser import parse_args
from cli.runtime import setup_logging
from cli.settings_summary import print_settings_summary
from config import SettingsError, load_settings
from core import StoreInitError, build_prompt_store

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from collections.abc import Sequence

    from config import PromptStoreSettings
    from core.store import SQLitePromptStore

EXIT_SETTINGS_FAILED = 2
EXIT_INIT_FAILED = 3


def _initialise_store(
    settings: PromptStoreSettings,
    logger: logging.Logger,
) -> SQLitePromptStore | None:
    store = build_prompt_store(settings)
    try:
        store.init()
    except StoreInitError as exc:
        logger.error("Failed to initialise prompt store: %s", exc)
        return None
    return store


def main(argv: Sequence[str] | None = None) -> int:
    """Entrypoint that wires settings, the store, and CLI commands."""
    args = parse_args(argv)
    setup_logging(args.logging_config)

    logger = logging.getLogger("prompt_store.main")
    try:
        settings = load_settings()
    except SettingsError as exc:
        logger.error("Failed to load settings: %s", exc)
        return EXIT_SETTINGS_FAILED

    if args.print_settings:
        print_settings_summary(settings)
        return 0

    spec = COMMAND_SPECS[getattr(args, "command", None)]
    store = _initialise_store(settings, logger)
    if store is None:
        return EXIT_INIT_FAILED
    try:
        return spec.handler(store, args, logger)
    finally:
        store.close()


if __name__ == "__main__":
    raise SystemExit(main())
