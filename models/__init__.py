"""Data models for the prompt store.

Updates: v0.1.0 - 2026-10-17 - Export PromptRecord and RecordMetadata dataclasses.
"""

from .prompt_record import PromptRecord, RecordMetadata

__all__ = [
    "PromptRecord",
    "RecordMetadata",
]
