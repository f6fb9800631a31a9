from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from mirsinn.adapters.llm_client import call_chat_completion, parse_json_object
from mirsinn.config import get_settings
from mirsinn.domain.results import (
    fallback_summary,
    no_vote_summary,
    option_labels,
    question_translations,
    sanitize_summary,
)
from mirsinn.domain.text import SUPPORTED_LANGUAGES

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You deliver compact polling analysis across Luxembourgish, French, German, and English. "
    "Stay neutral and factual. Output JSON only."
)

ANALYSIS_PROMPT = """You are a multilingual polling analyst. Review the poll question and response breakdown.
Craft a concise interpretation (max 40 words per language) that explains what the results mean for the question's issue.
Avoid repeating raw vote counts except when essential to support the insight.
Summaries must exist for languages: lb, fr, de, en.
Write plain ASCII text, no fancy punctuation, no quotation marks around the whole sentence.
Respond with JSON only in the form:
{"summary":{"lb":"...","fr":"...","de":"...","en":"..."}}"""


def build_poll_context(document: Mapping[str, Any], breakdown: List[Mapping[str, Any]], total: int) -> Dict[str, Any]:
    options = []
    for option in document.get("options") or []:
        if isinstance(option, Mapping) and option.get("id"):
            options.append({"id": option["id"], "label": option_labels(document, option["id"])})
    enriched = [
        {
            "optionId": item.get("optionId"),
            "count": item.get("count"),
            "percentage": item.get("percentage"),
            "label": option_labels(document, str(item.get("optionId"))),
        }
        for item in breakdown
    ]
    return {
        "question": question_translations(document),
        "totalResponses": total,
        "breakdown": enriched,
        "options": options,
        "analysis": document.get("analysis"),
        "article": document.get("article"),
    }


def analyse_results(
    document: Mapping[str, Any],
    breakdown: List[Mapping[str, Any]],
    total: int,
    *,
    model: Optional[str] = None,
) -> Dict[str, str]:
    """Return a 4-language interpretation, falling back to a fixed summary on any failure."""
    if not total or not breakdown:
        return no_vote_summary(document)

    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"{ANALYSIS_PROMPT}\n\n[poll_context]\n"
            + json.dumps(build_poll_context(document, breakdown, total), ensure_ascii=False),
        },
    ]
    try:
        content = call_chat_completion(
            messages,
            model=model or get_settings().results_model_name,
            temperature=0.4,
        )
        parsed = parse_json_object(content)
    except RuntimeError as exc:
        # GenerationError and missing credentials both land here
        LOGGER.error("Failed to generate result analysis: %s", exc)
        return fallback_summary(document, breakdown, total)

    summary = sanitize_summary(parsed.get("summary", parsed))
    if len(summary) == len(SUPPORTED_LANGUAGES):
        return summary
    LOGGER.warning("Result analysis incomplete (%s), using fallback", sorted(summary))
    return fallback_summary(document, breakdown, total)


__all__ = ["analyse_results", "build_poll_context"]
