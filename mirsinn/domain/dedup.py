from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Set, Tuple

from .errors import PayloadValidationError
from .models import RecentArticle
from .text import normalize_text, question_signature

MIN_OPTIONS = 2
MAX_OPTIONS = 4


@dataclass(frozen=True, slots=True)
class CandidateKeys:
    url: str
    title: str
    signature: str


@dataclass(slots=True)
class ExclusionSet:
    """Run-scoped record of used articles and question signatures; it only ever grows."""

    urls: Set[str] = field(default_factory=set)
    titles: Set[str] = field(default_factory=set)
    signatures: Set[str] = field(default_factory=set)

    @classmethod
    def from_recent(cls, articles: Iterable[RecentArticle]) -> "ExclusionSet":
        exclusion = cls()
        for article in articles:
            exclusion.add_article(article.url, article.title)
        return exclusion

    def add_article(self, url: Optional[str], title: Optional[str]) -> None:
        url_key = (url or "").strip().lower()
        title_key = (title or "").strip().lower()
        if url_key:
            self.urls.add(url_key)
        if title_key:
            self.titles.add(title_key)

    def add(self, keys: CandidateKeys) -> None:
        if keys.url:
            self.urls.add(keys.url)
        if keys.title:
            self.titles.add(keys.title)
        if keys.signature:
            self.signatures.add(keys.signature)

    def is_duplicate(self, keys: CandidateKeys) -> bool:
        if keys.url and keys.url in self.urls:
            return True
        if keys.title and keys.title in self.titles:
            return True
        return bool(keys.signature) and keys.signature in self.signatures

    def sizes(self) -> Tuple[int, int, int]:
        return len(self.urls), len(self.titles), len(self.signatures)


def _article(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    article = payload.get("article")
    return article if isinstance(article, Mapping) else {}


def candidate_keys(payload: Mapping[str, Any]) -> CandidateKeys:
    article = _article(payload)
    url = normalize_text(article.get("url")).strip().lower()
    title = normalize_text(article.get("title")).strip().lower()
    return CandidateKeys(url=url, title=title, signature=question_signature(payload.get("question")))


def validate_payload(payload: Any) -> Mapping[str, Any]:
    """Check the fields downstream consumers rely on; raise PayloadValidationError otherwise."""
    if not isinstance(payload, Mapping):
        raise PayloadValidationError("payload is not an object")
    if not question_signature(payload.get("question")):
        raise PayloadValidationError("payload missing question")
    options = payload.get("options")
    if not isinstance(options, list) or not options:
        raise PayloadValidationError("payload missing options")
    if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
        raise PayloadValidationError(
            f"payload has {len(options)} options, expected {MIN_OPTIONS} to {MAX_OPTIONS}"
        )
    for index, option in enumerate(options):
        if not isinstance(option, Mapping):
            raise PayloadValidationError(f"option {index + 1} is not an object")
        if not normalize_text(option.get("label")).strip():
            raise PayloadValidationError(f"option {index + 1} has no label")
    return payload


__all__ = ["CandidateKeys", "ExclusionSet", "MAX_OPTIONS", "MIN_OPTIONS", "candidate_keys", "validate_payload"]
