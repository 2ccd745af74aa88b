"""Collision-checked identifier generation for prompt records.

Updates:
  v0.1.0 - 2026-10-17 - Initial timestamp plus random suffix generator.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Collection

logger = logging.getLogger("prompt_store.identifiers")

ID_PREFIX = "prompt"
MAX_ATTEMPTS = 10
_ALPHABET = string.digits + string.ascii_lowercase


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


class IdentifierGenerator:
    """Produce record identifiers that are unique against the current record set."""

    def __init__(
        self,
        exists: Callable[[str], bool],
        *,
        max_attempts: int = MAX_ATTEMPTS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._exists = exists
        self._max_attempts = max(1, max_attempts)
        self._clock = clock

    def _timestamp_ms(self) -> int:
        return int(self._clock() * 1000)

    def new_id(self) -> str:
        """Return an identifier not present in the record set at call time.

        Up to ``max_attempts`` candidates of the form
        ``prompt_<ms>_<9 chars>_<3 chars>`` are checked. When all of them
        collide, a longer 16-character suffix is returned unchecked.
        """
        for _ in range(self._max_attempts):
            candidate = (
                f"{ID_PREFIX}_{self._timestamp_ms()}_{_random_base36(9)}_{_random_base36(3)}"
            )
            if not self._exists(candidate):
                return candidate
        logger.warning(
            "Identifier collision limit reached after %s attempts; using long suffix",
            self._max_attempts,
        )
        return f"{ID_PREFIX}_{self._timestamp_ms()}_{_random_base36(16)}"


def generate_unique_id(existing_ids: Collection[str]) -> str:
    """Return an identifier that is not contained in *existing_ids*."""
    return IdentifierGenerator(existing_ids.__contains__).new_id()


__all__ = ["ID_PREFIX", "MAX_ATTEMPTS", "IdentifierGenerator", "generate_unique_id"]
