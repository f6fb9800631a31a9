"""Localized text values as produced by the model and stored in documents.

A text field is either a plain string or a per-language mapping such as
``{"lb": ..., "fr": ..., "de": ..., "en": ...}``. Raw JSON values are lifted
into :class:`PlainText` / :class:`LocalizedText` by :func:`as_text`; every
other consumer goes through :func:`normalize_text` or
:func:`question_signature`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

LANGUAGE_PRIORITY: tuple[str, ...] = ("lb", "fr", "de", "en")
SUPPORTED_LANGUAGES = LANGUAGE_PRIORITY
DEFAULT_LANGUAGE = "lb"
SIGNATURE_SEPARATOR = "|"


@dataclass(frozen=True, slots=True)
class PlainText:
    value: str


@dataclass(frozen=True, slots=True)
class LocalizedText:
    # insertion order of the source mapping is preserved for the fallback lookup
    values: Dict[str, str] = field(default_factory=dict)

    def get(self, language: str) -> Optional[str]:
        return self.values.get(language)


Text = Union[PlainText, LocalizedText]


def as_text(value: Any) -> Optional[Text]:
    if isinstance(value, (PlainText, LocalizedText)):
        return value
    if isinstance(value, str):
        return PlainText(value)
    if isinstance(value, Mapping):
        strings = {str(key): item for key, item in value.items() if isinstance(item, str)}
        return LocalizedText(strings)
    return None


def normalize_text(value: Any) -> str:
    """Return a single display string for a plain or per-language value."""
    text = as_text(value)
    if isinstance(text, PlainText):
        return text.value
    if isinstance(text, LocalizedText):
        for language in LANGUAGE_PRIORITY:
            candidate = text.get(language)
            if candidate:
                return candidate
        for candidate in text.values.values():
            if candidate:
                return candidate
    return ""


def question_signature(question: Any) -> str:
    """Lowercase, language-ordered fingerprint used as a duplicate key."""
    text = as_text(question)
    if isinstance(text, PlainText):
        return text.value.strip().lower()
    if isinstance(text, LocalizedText):
        parts = []
        for language in LANGUAGE_PRIORITY:
            candidate = (text.get(language) or "").strip().lower()
            if candidate:
                parts.append(candidate)
        return SIGNATURE_SEPARATOR.join(parts)
    return ""


def normalize_language(language: Optional[str]) -> str:
    if not language:
        return DEFAULT_LANGUAGE
    lowered = str(language).strip().lower()
    return lowered if lowered in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def localized_value(value: Any, language: str) -> Optional[str]:
    """Return the entry for ``language`` when present and non-blank."""
    text = as_text(value)
    if isinstance(text, LocalizedText):
        candidate = text.get(language)
        if candidate and candidate.strip():
            return candidate
        return None
    if isinstance(text, PlainText) and text.value.strip():
        return text.value
    return None


def truncate_words(text: Optional[str], max_words: int) -> str:
    if not text or not max_words:
        return ""
    words = str(text).strip().split()
    return " ".join(words[:max_words])


__all__ = [
    "DEFAULT_LANGUAGE",
    "LANGUAGE_PRIORITY",
    "LocalizedText",
    "PlainText",
    "SIGNATURE_SEPARATOR",
    "SUPPORTED_LANGUAGES",
    "Text",
    "as_text",
    "localized_value",
    "normalize_language",
    "normalize_text",
    "question_signature",
    "truncate_words",
]
