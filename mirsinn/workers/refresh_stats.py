from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

from mirsinn.adapters.db import get_adapter
from mirsinn.adapters.docstore import DocumentStore, document_id
from mirsinn.adapters.llm_results import analyse_results
from mirsinn.domain.dates import lux_date_key, shift_date_key, utc_now_iso
from mirsinn.domain.documents import ANSWERS_COLLECTION, day_path, items_path
from mirsinn.domain.results import build_breakdown, tally_answers
from mirsinn.workers import log_info, worker_session

WORKER = "refresh_stats"
MISSING_QUESTION = "missing_question"

Analyser = Callable[..., Dict[str, str]]


def compute_results(
    store: DocumentStore,
    document: Mapping[str, Any],
    answers_path: str,
    *,
    analyse: Analyser,
    timestamp: str,
) -> Dict[str, Any]:
    per_option: Dict[str, int] = {
        str(option["id"]): 0
        for option in document.get("options") or []
        if isinstance(option, Mapping) and option.get("id")
    }
    for option_id, count in tally_answers(data for _path, data in store.list(answers_path)).items():
        per_option[option_id] = count
    total = sum(per_option.values())
    breakdown = build_breakdown(per_option) if total else []
    return {
        "totalResponses": total,
        "perOption": per_option,
        "breakdown": breakdown,
        "lastUpdated": timestamp,
        "summary": analyse(document, breakdown, total),
    }


def run(
    date_key: Optional[str] = None,
    *,
    store: Optional[DocumentStore] = None,
    analyse: Optional[Analyser] = None,
    clock: Callable[[], str] = utc_now_iso,
) -> Dict[str, Any] | str:
    """Recount votes for a day (yesterday by default) and store the results analysis."""
    store = store if store is not None else get_adapter()
    analyse = analyse or analyse_results
    date_key = date_key or shift_date_key(lux_date_key(), -1)

    with worker_session(WORKER, date_key=date_key):
        day_key = day_path(date_key)
        day = store.get(day_key)
        if day is None:
            log_info(WORKER, f"no question document for {date_key}")
            return MISSING_QUESTION

        timestamp = clock()
        items = store.list(items_path(date_key))
        total_responses = 0
        if items:
            primary_id = day.get("primaryQuestionId")
            for path, document in items:
                results = compute_results(
                    store, document, f"{path}/{ANSWERS_COLLECTION}", analyse=analyse, timestamp=timestamp
                )
                store.set(path, {"results": results, "updatedAt": timestamp}, merge=True)
                total_responses += results["totalResponses"]
                if document_id(path) == primary_id:
                    store.set(day_key, {"results": results, "updatedAt": timestamp}, merge=True)
        else:
            results = compute_results(
                store, day, f"{day_key}/{ANSWERS_COLLECTION}", analyse=analyse, timestamp=timestamp
            )
            store.set(day_key, {"results": results, "updatedAt": timestamp}, merge=True)
            total_responses = results["totalResponses"]

        log_info(WORKER, f"stats refreshed for {date_key}: {total_responses} response(s)")
        return {"status": "updated", "totalResponses": total_responses, "questions": len(items) or 1}


__all__ = ["compute_results", "run"]
