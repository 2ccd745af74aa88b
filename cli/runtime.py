"""Runtime boot helpers for the prompt store CLI.

Updates:
  v0.1.0 - 2026-10-17 - Logging configuration with basicConfig fallback.
"""

from __future__ import annotations

import configparser
import logging
import logging.config
from pathlib import Path

DEFAULT_LOGGING_CONFIG = Path("config/logging.conf")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(logging_conf_path: Path | None) -> None:
    """Configure logging using *logging_conf_path* when available."""
    path = logging_conf_path or DEFAULT_LOGGING_CONFIG
    if path.exists():
        try:
            logging.config.fileConfig(path, disable_existing_loggers=False)
            return
        except (configparser.Error, KeyError, ValueError, OSError) as exc:
            logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
            logging.getLogger("prompt_store.cli").warning(
                "Ignoring unusable logging configuration %s: %s", path, exc
            )
            return
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
