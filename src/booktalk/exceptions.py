"""Custom exception hierarchy for BookTalk.

These exceptions allow callers to discriminate error categories
and handle them appropriately while preserving the original context.

A missing Book or Annotation is not an error: lookups return ``None`` because
deletion races between screens are expected.
"""

from __future__ import annotations


class BookTalkError(Exception):
    """Base class for all BookTalk exceptions."""


class ConfigError(BookTalkError):
    """Raised when configuration loading or validation fails."""


class StoreError(BookTalkError):
    """Raised when the record store is unreachable or its schema is unusable."""


class LookupServiceError(BookTalkError):
    """Raised when the book metadata service cannot be reached."""
