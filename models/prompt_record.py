"""Prompt record data model and payload conversion helpers.

Updates: v0.3.0 - 2026-10-17 - Add partial-field merge with immutable field guards.
Updates: v0.2.0 - 2026-10-17 - Track duplicate override provenance in record metadata.
Updates: v0.1.0 - 2026-10-17 - Initial PromptRecord schema with JSON payload helpers.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

DEFAULT_CATEGORY = "General"
DEFAULT_FOLDER = "Default"
DEFAULT_SOURCE = "manual"
MIN_RATING = 0
MAX_RATING = 5

_WHITESPACE = re.compile(r"\s+")

# Payload keys accepted by PromptRecord.merged(); values name the dataclass field.
_MUTABLE_FIELDS: dict[str, str] = {
    "text": "text",
    "category": "category",
    "tags": "tags",
    "folder": "folder",
    "rating": "rating",
    "notes": "notes",
    "usage_count": "usage_count",
    "usageCount": "usage_count",
}
_METADATA_FIELDS = {"metadata", "source", "confidence"}
_SERVER_TIMESTAMPS = {"createdAt", "created_at", "updatedAt", "updated_at"}


def utc_now() -> datetime:
    """Return an aware UTC timestamp."""
    return datetime.now(UTC)


def _ensure_datetime(value: Any) -> datetime:
    """Parse incoming datetime values (isoformat strings or datetime)."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if value is None or value == "":
        return utc_now()
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Return the ISO-8601 string stored in SQLite and sent to collaborators."""
    return value.astimezone(UTC).isoformat()


def normalise_tags(value: Iterable[Any] | str | None) -> list[str]:
    """Return lowercase, trimmed tags in input order with empty entries removed."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = [value]
    else:
        items = value
    tags: list[str] = []
    for raw in items:
        text = _WHITESPACE.sub(" ", str(raw)).strip().lower()
        if text:
            tags.append(text)
    return tags


def _coerce_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer, got a boolean")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{field_name} must be an integer, got {value!r}")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be an integer, got {value!r}") from exc


def _coerce_rating(value: Any) -> int:
    rating = _coerce_int(0 if value is None else value, "rating")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValueError(f"rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}")
    return rating


def _coerce_confidence(value: Any) -> float:
    if value is None:
        return 1.0
    try:
        confidence = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"confidence must be a number, got {value!r}") from exc
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence must be within [0, 1], got {confidence}")
    return confidence


@dataclass(slots=True)
class RecordMetadata:
    """Provenance details attached to a record."""

    source: str = DEFAULT_SOURCE
    confidence: float = 1.0
    duplicate_override: bool = False

    def __post_init__(self) -> None:
        self.source = str(self.source or DEFAULT_SOURCE)
        self.confidence = _coerce_confidence(self.confidence)
        self.duplicate_override = bool(self.duplicate_override)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"source": self.source, "confidence": self.confidence}
        if self.duplicate_override:
            payload["duplicateOverride"] = True
        return payload

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | None) -> RecordMetadata:
        data = data or {}
        return cls(
            source=str(data.get("source") or DEFAULT_SOURCE),
            confidence=_coerce_confidence(data.get("confidence")),
            duplicate_override=bool(
                data.get("duplicateOverride", data.get("duplicate_override", False))
            ),
        )


@dataclass(slots=True)
class PromptRecord:
    """Dataclass representation of a stored prompt."""

    id: str
    text: str
    category: str = DEFAULT_CATEGORY
    tags: list[str] = field(default_factory=list)
    folder: str = DEFAULT_FOLDER
    rating: int = 0
    usage_count: int = 0
    notes: str = ""
    metadata: RecordMetadata = field(default_factory=RecordMetadata)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Validate invariants and normalise free-form inputs."""
        self.id = str(self.id or "").strip()
        if not self.id:
            raise ValueError("id must be a non-empty string")
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValueError("text must be a non-empty string")
        self.category = str(self.category or DEFAULT_CATEGORY)
        self.folder = str(self.folder or DEFAULT_FOLDER)
        self.tags = normalise_tags(self.tags)
        self.rating = _coerce_rating(self.rating)
        self.usage_count = _coerce_int(self.usage_count or 0, "usage_count")
        if self.usage_count < 0:
            raise ValueError("usage_count must not be negative")
        self.notes = "" if self.notes is None else str(self.notes)
        if isinstance(self.metadata, Mapping):
            self.metadata = RecordMetadata.from_payload(self.metadata)
        self.created_at = _ensure_datetime(self.created_at)
        self.updated_at = _ensure_datetime(self.updated_at)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON shape exchanged with collaborators."""
        return {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "tags": list(self.tags),
            "folder": self.folder,
            "rating": self.rating,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "usage_count": self.usage_count,
            "notes": self.notes,
            "metadata": self.metadata.to_payload(),
        }

    @classmethod
    def from_payload(
        cls,
        data: Mapping[str, Any],
        *,
        record_id: str | None = None,
    ) -> PromptRecord:
        """Create a record from a collaborator payload.

        Accepts both the camelCase timestamps of the JSON shape and the
        snake_case spelling used by older exports, plus flat ``source`` and
        ``confidence`` keys when no ``metadata`` mapping is present.
        """
        metadata_payload = data.get("metadata")
        if not isinstance(metadata_payload, Mapping):
            metadata_payload = {
                "source": data.get("source"),
                "confidence": data.get("confidence"),
            }
        tags = data.get("tags")
        if tags is not None and not isinstance(tags, (list, tuple, set, str)):
            raise ValueError("tags must be a list of strings")
        return cls(
            id=str(record_id if record_id is not None else data.get("id") or ""),
            text=data.get("text"),  # type: ignore[arg-type]
            category=str(data.get("category") or DEFAULT_CATEGORY),
            tags=normalise_tags(tags),
            folder=str(data.get("folder") or DEFAULT_FOLDER),
            rating=data.get("rating") or 0,
            usage_count=data.get("usage_count", data.get("usageCount")) or 0,
            notes=str(data.get("notes") or ""),
            metadata=RecordMetadata.from_payload(metadata_payload),
            created_at=_ensure_datetime(data.get("createdAt", data.get("created_at"))),
            updated_at=_ensure_datetime(data.get("updatedAt", data.get("updated_at"))),
        )

    def merged(self, fields: Mapping[str, Any], *, now: datetime | None = None) -> PromptRecord:
        """Return a copy with *fields* applied; unspecified fields are retained.

        ``id`` may be repeated but not changed, server-managed timestamps in
        the payload are ignored, and ``usage_count`` may only grow or be reset
        to zero.
        """
        changes: dict[str, Any] = {}
        metadata = self.metadata
        for key, value in fields.items():
            if key == "id":
                if str(value) != self.id:
                    raise ValueError("id is immutable")
                continue
            if key in _SERVER_TIMESTAMPS:
                continue
            if key in _METADATA_FIELDS:
                metadata = _merge_metadata(metadata, key, value)
                continue
            attribute = _MUTABLE_FIELDS.get(key)
            if attribute is None:
                raise ValueError(f"Unknown record field: {key}")
            changes[attribute] = value

        if "usage_count" in changes:
            new_count = _coerce_int(changes["usage_count"], "usage_count")
            if new_count < 0:
                raise ValueError("usage_count must not be negative")
            if 0 < new_count < self.usage_count:
                raise ValueError("usage_count can only increase or be reset to 0")
            changes["usage_count"] = new_count
        if "tags" in changes:
            changes["tags"] = normalise_tags(changes["tags"])

        return replace(
            self,
            **changes,
            metadata=metadata,
            updated_at=now or utc_now(),
        )


def _merge_metadata(current: RecordMetadata, key: str, value: Any) -> RecordMetadata:
    if key == "metadata":
        if not isinstance(value, Mapping):
            raise ValueError("metadata must be a mapping")
        merged = current.to_payload()
        merged.update(value)
        return RecordMetadata.from_payload(merged)
    if key == "source":
        return replace(current, source=str(value or DEFAULT_SOURCE))
    return replace(current, confidence=_coerce_confidence(value))


__all__ = [
    "DEFAULT_CATEGORY",
    "DEFAULT_FOLDER",
    "DEFAULT_SOURCE",
    "MAX_RATING",
    "MIN_RATING",
    "PromptRecord",
    "RecordMetadata",
    "format_timestamp",
    "normalise_tags",
    "utc_now",
]
