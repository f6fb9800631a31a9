"""Assembly of persisted question and day documents.

Field names are camelCase because the documents are read as-is by the web
frontend and the notification/stats jobs.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import QuestionEntry, Source
from .text import LANGUAGE_PRIORITY, SIGNATURE_SEPARATOR, normalize_text

QUESTIONS_COLLECTION = "questions"
ITEMS_COLLECTION = "items"
ANSWERS_COLLECTION = "answers"
MAX_TAGS = 3
MAX_TAG_CHARS = 40

# fields mirrored from the primary question onto the day document
PRIMARY_FIELDS = (
    "question",
    "options",
    "article",
    "tags",
    "analysis",
    "notification",
    "newsSource",
    "listingExcerpt",
    "results",
    "source",
)


def day_path(date_key: str) -> str:
    return f"{QUESTIONS_COLLECTION}/{date_key}"


def items_path(date_key: str) -> str:
    return f"{day_path(date_key)}/{ITEMS_COLLECTION}"


def question_path(date_key: str, question_id: str) -> str:
    return f"{items_path(date_key)}/{question_id}"


def _clip(value: str, limit: int) -> str:
    return value.strip()[:limit].strip()


def dedupe_tags(raw_tags: Any, *, limit: int = MAX_TAGS) -> List[Any]:
    """Return at most ``limit`` unique tags, each text clipped to 40 characters."""
    if not isinstance(raw_tags, list):
        return []
    seen = set()
    tags: List[Any] = []
    for raw in raw_tags:
        tag: Any
        if isinstance(raw, str):
            tag = _clip(raw, MAX_TAG_CHARS)
            key = tag.lower()
        elif isinstance(raw, Mapping):
            tag = {}
            for language, value in raw.items():
                if isinstance(value, str) and value.strip():
                    tag[str(language)] = _clip(value, MAX_TAG_CHARS)
            ordered = [tag.get(language, "").lower() for language in LANGUAGE_PRIORITY]
            extras = [value.lower() for language, value in tag.items() if language not in LANGUAGE_PRIORITY]
            key = SIGNATURE_SEPARATOR.join(ordered + extras)
        else:
            continue
        if not tag or not key.strip(SIGNATURE_SEPARATOR) or key in seen:
            continue
        seen.add(key)
        tags.append(tag)
        if len(tags) >= limit:
            break
    return tags


def build_options(raw_options: Sequence[Any]) -> tuple[List[Dict[str, Any]], Dict[str, int]]:
    options: List[Dict[str, Any]] = []
    per_option: Dict[str, int] = {}
    for index, raw in enumerate(raw_options or []):
        if not isinstance(raw, Mapping):
            continue
        option_id = str(raw.get("id") or "").strip() or f"o{index + 1}"
        suffix = index + 1
        while option_id in per_option:
            option_id = f"o{suffix}"
            suffix += 1
        per_option[option_id] = 0
        options.append({"id": option_id, "label": raw.get("label")})
    return options, per_option


def build_question_document(
    payload: Mapping[str, Any],
    *,
    source: Source,
    listing_content: str,
    date_key: str,
    order: int,
    model: str,
    prompt_version: str,
    timestamp: str,
    excerpt_chars: int = 2000,
) -> Dict[str, Any]:
    options, per_option = build_options(payload.get("options") or [])
    article = payload.get("article") if isinstance(payload.get("article"), Mapping) else {}
    return {
        "dateKey": date_key,
        "order": order,
        "question": payload.get("question"),
        "options": options,
        "article": {
            "title": article.get("title"),
            "url": article.get("url"),
            "summary": article.get("summary") or None,
        },
        "tags": dedupe_tags(payload.get("tags")),
        "analysis": payload.get("analysis") or None,
        "notification": payload.get("notification") or None,
        "newsSource": source.to_reference(),
        "listingExcerpt": (listing_content or "")[:excerpt_chars],
        "results": {
            "totalResponses": 0,
            "perOption": per_option,
            "breakdown": [],
            "lastUpdated": timestamp,
        },
        "source": {
            "generatedAt": timestamp,
            "model": model,
            "promptVersion": prompt_version,
            "listingStrategy": source.strategy,
        },
        "createdAt": timestamp,
        "updatedAt": timestamp,
    }


def question_summary(entry: QuestionEntry) -> Dict[str, Any]:
    document = entry.document
    article = document.get("article") or {}
    news_source = document.get("newsSource") or {}
    return {
        "id": entry.id,
        "order": entry.order,
        "title": normalize_text(article.get("title")) or normalize_text(document.get("question")),
        "source": news_source.get("id"),
        "url": article.get("url"),
    }


def build_day_document(entries: Sequence[QuestionEntry], *, date_key: str, timestamp: str) -> Dict[str, Any]:
    if not entries:
        raise ValueError("a day document needs at least one question")
    primary = entries[0]
    document: Dict[str, Any] = {
        "dateKey": date_key,
        "questionCount": len(entries),
        "primaryQuestionId": primary.id,
        "questionIds": [entry.id for entry in entries],
        "questionsSummary": [question_summary(entry) for entry in entries],
    }
    for name in PRIMARY_FIELDS:
        document[name] = copy.deepcopy(primary.document.get(name))
    document["createdAt"] = timestamp
    document["updatedAt"] = timestamp
    return document


def has_question(document: Optional[Mapping[str, Any]]) -> bool:
    if not document:
        return False
    return bool(document.get("question")) or bool(document.get("questionIds"))


__all__ = [
    "ANSWERS_COLLECTION",
    "ITEMS_COLLECTION",
    "MAX_TAGS",
    "MAX_TAG_CHARS",
    "PRIMARY_FIELDS",
    "QUESTIONS_COLLECTION",
    "build_day_document",
    "build_options",
    "build_question_document",
    "day_path",
    "dedupe_tags",
    "has_question",
    "items_path",
    "question_path",
    "question_summary",
]
