from __future__ import annotations

import uuid
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple

from mirsinn.adapters.db import get_adapter
from mirsinn.adapters.docstore import DocumentStore
from mirsinn.adapters.llm_question import generate_question
from mirsinn.adapters.reader import fetch_listing_content
from mirsinn.config import get_settings
from mirsinn.domain.dates import lux_date_key, utc_now_iso
from mirsinn.domain.dedup import ExclusionSet
from mirsinn.domain.documents import build_day_document, day_path, has_question, items_path
from mirsinn.domain.errors import QuotaUnsatisfiableError
from mirsinn.domain.models import ForbiddenArticle, JobResult, QuestionEntry, QuestionJobConfig, Source
from mirsinn.domain.sources import load_sources
from mirsinn.workers import log_info, log_summary, log_warning, worker_session
from mirsinn.workers.recent_articles import fetch_recent_articles
from mirsinn.workers.source_attempts import (
    ListingFetcher,
    QuestionGenerator,
    RunState,
    attempt_source,
)

WORKER = "daily_question"
CREATED = "created"
ALREADY_EXISTS = "already_exists"


def new_question_id() -> str:
    return uuid.uuid4().hex[:20]


def day_already_generated(store: DocumentStore, date_key: str) -> bool:
    if has_question(store.get(day_path(date_key))):
        return True
    return bool(store.list(items_path(date_key)))


def schedule_sources(
    sources: Sequence[Source],
    state: RunState,
    forbidden: Tuple[ForbiddenArticle, ...],
    *,
    config: QuestionJobConfig,
    fetch_listing: ListingFetcher,
    generate: QuestionGenerator,
    clock: Callable[[], str],
    id_factory: Callable[[], str],
) -> int:
    """Run the primary pass then the round-robin fallback; return the number of controller runs.

    Controller runs across both passes never exceed
    ``len(sources) * config.fallback_multiplier``.
    """
    target = config.target_count
    safety_limit = len(sources) * config.fallback_multiplier
    runs = 0

    def _run(source: Source) -> None:
        nonlocal forbidden, runs
        outcome = attempt_source(
            source,
            state,
            forbidden,
            config=config,
            fetch_listing=fetch_listing,
            generate=generate,
            clock=clock,
            id_factory=id_factory,
        )
        forbidden = outcome.forbidden
        runs += 1

    for source in sources:
        if len(state.entries) >= target or runs >= safety_limit:
            break
        _run(source)

    if len(state.entries) < target and sources:
        log_info(WORKER, f"fallback pass: {len(state.entries)}/{target} questions after primary pass")
        index = 0
        while len(state.entries) < target and runs < safety_limit:
            if all(source.id in state.abandoned_sources for source in sources):
                log_warning(WORKER, "every source failed to fetch; stopping fallback pass")
                break
            source = sources[index % len(sources)]
            index += 1
            if source.id in state.abandoned_sources:
                continue
            _run(source)

    return runs


def commit_day(store: DocumentStore, date_key: str, entries: List[QuestionEntry], *, timestamp: str) -> None:
    """Write the day document and every question document in one atomic batch."""
    batch = store.batch()
    batch.set(day_path(date_key), build_day_document(entries, date_key=date_key, timestamp=timestamp))
    for entry in entries:
        batch.set(entry.path, entry.document)
    batch.commit()


def run(
    date_key: Optional[str] = None,
    *,
    store: Optional[DocumentStore] = None,
    sources: Optional[Sequence[Source]] = None,
    config: Optional[QuestionJobConfig] = None,
    fetch_listing: Optional[ListingFetcher] = None,
    generate: Optional[QuestionGenerator] = None,
    clock: Callable[[], str] = utc_now_iso,
    id_factory: Callable[[], str] = new_question_id,
) -> JobResult:
    """Generate, deduplicate and persist the questions of one Luxembourg calendar day."""
    settings = get_settings()
    store = store if store is not None else get_adapter()
    sources = list(sources) if sources is not None else load_sources(settings.news_sources_path)
    config = config or QuestionJobConfig.from_settings(settings)
    fetch_listing = fetch_listing or fetch_listing_content
    generate = generate or partial(generate_question, model=config.model)
    date_key = date_key or lux_date_key()

    with worker_session(WORKER, date_key=date_key):
        if day_already_generated(store, date_key):
            log_info(WORKER, f"question already exists for {date_key}")
            return JobResult(status=ALREADY_EXISTS, date_key=date_key)

        recent = fetch_recent_articles(store, date_key, config.recent_days)
        log_info(WORKER, f"{len(recent)} recent article(s) excluded")
        state = RunState(
            date_key=date_key,
            recent_articles=tuple(recent),
            exclusion=ExclusionSet.from_recent(recent),
        )
        forbidden = tuple(ForbiddenArticle(title=item.title, url=item.url, reason="recent") for item in recent)

        runs = schedule_sources(
            sources,
            state,
            forbidden,
            config=config,
            fetch_listing=fetch_listing,
            generate=generate,
            clock=clock,
            id_factory=id_factory,
        )

        produced = len(state.entries)
        if produced == 0:
            raise QuotaUnsatisfiableError(
                f"No question generated for {date_key} after {runs} source run(s) "
                f"and {state.generation_calls} generation call(s)"
            )
        degraded = produced < config.target_count
        if degraded:
            log_warning(WORKER, f"quota unmet for {date_key}: {produced}/{config.target_count} questions")

        commit_day(store, date_key, state.entries, timestamp=clock())
        log_summary(WORKER, ok=produced, failed=len(state.abandoned_sources) or None)
        return JobResult(
            status=CREATED,
            date_key=date_key,
            question_ids=[entry.id for entry in state.entries],
            controller_runs=runs,
            degraded=degraded,
            entries=tuple(state.entries),
        )


__all__ = [
    "ALREADY_EXISTS",
    "CREATED",
    "commit_day",
    "day_already_generated",
    "new_question_id",
    "run",
    "schedule_sources",
]
