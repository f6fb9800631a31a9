"""Domain-level objects shared across workers and adapters."""

from __future__ import annotations

from .dates import lux_date_key, parse_date_key, previous_date_keys, shift_date_key
from .dedup import CandidateKeys, ExclusionSet, candidate_keys, validate_payload
from .errors import (
    CommitError,
    GenerationError,
    ListingFetchError,
    PayloadValidationError,
    QuotaUnsatisfiableError,
)
from .models import ForbiddenArticle, JobResult, QuestionEntry, QuestionJobConfig, RecentArticle, Source
from .sources import DEFAULT_SOURCES, load_sources
from .text import LocalizedText, PlainText, normalize_text, question_signature

__all__ = [
    "CandidateKeys",
    "CommitError",
    "DEFAULT_SOURCES",
    "ExclusionSet",
    "ForbiddenArticle",
    "GenerationError",
    "JobResult",
    "ListingFetchError",
    "LocalizedText",
    "PayloadValidationError",
    "PlainText",
    "QuestionEntry",
    "QuestionJobConfig",
    "QuotaUnsatisfiableError",
    "RecentArticle",
    "Source",
    "candidate_keys",
    "load_sources",
    "lux_date_key",
    "normalize_text",
    "parse_date_key",
    "previous_date_keys",
    "question_signature",
    "shift_date_key",
    "validate_payload",
]
