from __future__ import annotations

from typing import Optional


class ListingFetchError(RuntimeError):
    """Raised when a source listing cannot be fetched."""

    def __init__(self, source_id: str, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id
        self.status_code = status_code


class GenerationError(RuntimeError):
    """Raised when the model returns empty or unparsable content."""


class PayloadValidationError(ValueError):
    """Raised when a generated payload lacks a question or usable options."""


class QuotaUnsatisfiableError(RuntimeError):
    """Raised when a run produced no question at all."""


class CommitError(RuntimeError):
    """Raised when an atomic batch write fails."""


__all__ = [
    "CommitError",
    "GenerationError",
    "ListingFetchError",
    "PayloadValidationError",
    "QuotaUnsatisfiableError",
]
