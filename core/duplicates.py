"""Near-duplicate detection over prompt text.

The check is a plain token-set comparison against the whole corpus. A single
user's store holds at most tens of thousands of short records, so no inverted
index is maintained for it.

Updates:
  v0.2.0 - 2026-10-17 - Exempt short texts from similarity matching.
  v0.1.0 - 2026-10-17 - Initial fingerprint and Jaccard similarity helpers.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from models.prompt_record import PromptRecord

logger = logging.getLogger("prompt_store.duplicates")

DEFAULT_THRESHOLD = 0.9
DEFAULT_MIN_TOKENS = 5

_WHITESPACE = re.compile(r"\s+")


def fingerprint(text: str) -> str:
    """Return *text* lowercased, trimmed, and with whitespace runs collapsed."""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def _tokens(normalised: str) -> frozenset[str]:
    return frozenset(normalised.split(" ")) if normalised else frozenset()


def jaccard_similarity(first: str, second: str) -> float:
    """Return ``|A ∩ B| / |A ∪ B|`` over the whitespace tokens of both texts."""
    tokens_a = _tokens(fingerprint(first))
    tokens_b = _tokens(fingerprint(second))
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


class DuplicateDetector:
    """Flag existing records whose text matches or nearly matches new text."""

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        *,
        min_tokens: int = DEFAULT_MIN_TOKENS,
    ) -> None:
        if not 0.0 < threshold <= 1.0:
            raise ValueError("threshold must be within (0, 1]")
        self.threshold = threshold
        self.min_tokens = max(0, min_tokens)

    def is_duplicate(self, text: str, other: str) -> bool:
        """Return True when *other* is an exact or near duplicate of *text*.

        Texts with fewer than ``min_tokens`` tokens on either side only match
        exactly; token-set similarity is too coarse for them.
        """
        candidate = fingerprint(text)
        existing = fingerprint(other)
        if candidate == existing:
            return True
        tokens_a = _tokens(candidate)
        tokens_b = _tokens(existing)
        if min(len(tokens_a), len(tokens_b)) < self.min_tokens:
            return False
        union = tokens_a | tokens_b
        return bool(union) and len(tokens_a & tokens_b) / len(union) >= self.threshold

    def find_duplicates(
        self,
        text: str,
        corpus: Iterable[PromptRecord],
        *,
        threshold: float | None = None,
    ) -> list[PromptRecord]:
        """Return records from *corpus* flagged as duplicates of *text*."""
        detector = self if threshold is None else DuplicateDetector(
            threshold, min_tokens=self.min_tokens
        )
        matches = [record for record in corpus if detector.is_duplicate(text, record.text)]
        if matches:
            logger.debug(
                "Duplicate check flagged %s record(s)",
                len(matches),
                extra={"match_ids": [record.id for record in matches]},
            )
        return matches


__all__ = [
    "DEFAULT_MIN_TOKENS",
    "DEFAULT_THRESHOLD",
    "DuplicateDetector",
    "fingerprint",
    "jaccard_similarity",
]
