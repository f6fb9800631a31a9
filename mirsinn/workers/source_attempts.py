"""Per-source generation attempts with duplicate rejection.

One call to :func:`attempt_source` fetches (or reuses) the listing snapshot of
a source and asks the model for a payload up to ``attempts_per_source``
times. The first valid candidate whose article and question are unseen this
run is accepted. The forbidden-article list is threaded through explicitly:
each call receives the current tuple and returns the extended one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from mirsinn.domain.dedup import CandidateKeys, ExclusionSet, candidate_keys, validate_payload
from mirsinn.domain.documents import build_question_document, question_path
from mirsinn.domain.errors import GenerationError, ListingFetchError, PayloadValidationError
from mirsinn.domain.models import ForbiddenArticle, QuestionEntry, QuestionJobConfig, RecentArticle, Source
from mirsinn.domain.text import normalize_text
from mirsinn.workers import log_error, log_info

WORKER = "daily_question"

ListingFetcher = Callable[[Source], str]
QuestionGenerator = Callable[..., Mapping[str, Any]]

ACCEPTED = "accepted"
FETCH_FAILED = "fetch_failed"
ABANDONED = "abandoned"
EXHAUSTED = "exhausted"


@dataclass
class RunState:
    """Mutable state owned by a single generation run."""

    date_key: str
    recent_articles: Tuple[RecentArticle, ...]
    exclusion: ExclusionSet
    entries: List[QuestionEntry] = field(default_factory=list)
    listing_cache: Dict[str, str] = field(default_factory=dict)
    abandoned_sources: Set[str] = field(default_factory=set)
    generation_calls: int = 0


@dataclass(frozen=True)
class SourceOutcome:
    source_id: str
    status: str
    attempts: int
    forbidden: Tuple[ForbiddenArticle, ...]
    entry: Optional[QuestionEntry] = None

    @property
    def accepted(self) -> bool:
        return self.entry is not None


def _listing_for(source: Source, state: RunState, fetch_listing: ListingFetcher) -> Optional[str]:
    cached = state.listing_cache.get(source.id)
    if cached is not None:
        return cached
    try:
        content = fetch_listing(source)
    except ListingFetchError as exc:
        state.abandoned_sources.add(source.id)
        log_error(WORKER, f"{source.id} listing", exc)
        return None
    state.listing_cache[source.id] = content
    return content


def _forbidden_entry(payload: Mapping[str, Any], reason: str) -> ForbiddenArticle:
    article = payload.get("article") if isinstance(payload.get("article"), Mapping) else {}
    return ForbiddenArticle(
        title=normalize_text(article.get("title")) or None,
        url=normalize_text(article.get("url")) or None,
        reason=reason,
    )


def build_context(
    source: Source,
    state: RunState,
    forbidden: Tuple[ForbiddenArticle, ...],
) -> Dict[str, Any]:
    return {
        "dateKey": state.date_key,
        "sourceId": source.id,
        "sourceLabel": source.label,
        "listingUrl": source.listing_url,
        "recentArticles": [article.to_context() for article in state.recent_articles],
        "forbiddenArticles": [article.to_context() for article in forbidden],
    }


def _accept(
    payload: Mapping[str, Any],
    keys: CandidateKeys,
    *,
    source: Source,
    listing: str,
    state: RunState,
    config: QuestionJobConfig,
    timestamp: str,
    question_id: str,
) -> QuestionEntry:
    document = build_question_document(
        payload,
        source=source,
        listing_content=listing,
        date_key=state.date_key,
        order=len(state.entries) + 1,
        model=config.model,
        prompt_version=config.prompt_version,
        timestamp=timestamp,
        excerpt_chars=config.listing_excerpt_chars,
    )
    entry = QuestionEntry(id=question_id, path=question_path(state.date_key, question_id), document=document)
    state.entries.append(entry)
    state.exclusion.add(keys)
    return entry


def attempt_source(
    source: Source,
    state: RunState,
    forbidden: Tuple[ForbiddenArticle, ...],
    *,
    config: QuestionJobConfig,
    fetch_listing: ListingFetcher,
    generate: QuestionGenerator,
    clock: Callable[[], str],
    id_factory: Callable[[], str],
) -> SourceOutcome:
    if source.id in state.abandoned_sources:
        return SourceOutcome(source.id, ABANDONED, 0, forbidden)

    listing = _listing_for(source, state, fetch_listing)
    if listing is None:
        return SourceOutcome(source.id, FETCH_FAILED, 0, forbidden)

    attempts = 0
    for attempt in range(1, config.attempts_per_source + 1):
        attempts = attempt
        label = f"{source.id} attempt {attempt}/{config.attempts_per_source}"
        state.generation_calls += 1
        try:
            payload = generate(
                source=source,
                listing_content=listing,
                context=build_context(source, state, forbidden),
            )
            validate_payload(payload)
        except (GenerationError, PayloadValidationError) as exc:
            log_error(WORKER, label, exc)
            continue

        keys = candidate_keys(payload)
        if state.exclusion.is_duplicate(keys):
            log_info(WORKER, f"DUPLICATE {label}: {keys.url or keys.title or keys.signature[:60]}")
            state.exclusion.add(keys)
            forbidden = forbidden + (_forbidden_entry(payload, "duplicate"),)
            continue

        entry = _accept(
            payload,
            keys,
            source=source,
            listing=listing,
            state=state,
            config=config,
            timestamp=clock(),
            question_id=id_factory(),
        )
        forbidden = forbidden + (_forbidden_entry(payload, "used_today"),)
        log_info(WORKER, f"OK {label}: question {entry.id} (order={entry.order}) {keys.url}")
        return SourceOutcome(source.id, ACCEPTED, attempts, forbidden, entry)

    log_info(WORKER, f"GIVE UP {source.id} after {attempts} attempt(s)")
    return SourceOutcome(source.id, EXHAUSTED, attempts, forbidden)


__all__ = [
    "ABANDONED",
    "ACCEPTED",
    "EXHAUSTED",
    "FETCH_FAILED",
    "ListingFetcher",
    "QuestionGenerator",
    "RunState",
    "SourceOutcome",
    "attempt_source",
    "build_context",
]
