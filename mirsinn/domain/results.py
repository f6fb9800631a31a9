"""Vote tallies, result summaries and notification copy."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from .text import SUPPORTED_LANGUAGES, localized_value, normalize_language, truncate_words

SUMMARY_MAX_WORDS = 40
DEFAULT_NOTIFICATION_TITLE = "Mir Sinn"
DEFAULT_NOTIFICATION_BODY = "Respond to Mir Sinn's question of the day."


def tally_answers(answers: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    per_option: Dict[str, int] = {}
    for answer in answers:
        option_id = answer.get("optionId")
        if not option_id:
            continue
        per_option[str(option_id)] = per_option.get(str(option_id), 0) + 1
    return per_option


def build_breakdown(per_option: Mapping[str, int]) -> List[Dict[str, Any]]:
    total = sum(per_option.values())
    breakdown = []
    for option_id, count in per_option.items():
        percentage = round(count / total * 100, 1) if total else 0
        breakdown.append({"optionId": option_id, "count": count, "percentage": percentage})
    return breakdown


def question_translations(document: Mapping[str, Any]) -> Dict[str, str]:
    question = document.get("question")
    values = {language: localized_value(question, language) or "" for language in SUPPORTED_LANGUAGES}
    fallback = values["en"] or values["fr"] or values["de"] or values["lb"] or "The question"
    return {language: value if value.strip() else fallback for language, value in values.items()}


def option_labels(document: Mapping[str, Any], option_id: str) -> Dict[str, str]:
    for option in document.get("options") or []:
        if isinstance(option, Mapping) and option.get("id") == option_id:
            label = option.get("label")
            return {language: localized_value(label, language) or option_id for language in SUPPORTED_LANGUAGES}
    return {language: option_id for language in SUPPORTED_LANGUAGES}


def no_vote_summary(document: Mapping[str, Any]) -> Dict[str, str]:
    question = question_translations(document)
    return {
        "lb": truncate_words(f'Keng Stemmen fonnt fir "{question["lb"]}". Waart nach op Reaktiounen.', SUMMARY_MAX_WORDS),
        "fr": truncate_words(f'Aucun vote enregistre pour "{question["fr"]}". Analyse en attente des reponses.', SUMMARY_MAX_WORDS),
        "de": truncate_words(f'Keine Stimmen fuer "{question["de"]}". Ergebnis folgt sobald Antworten kommen.', SUMMARY_MAX_WORDS),
        "en": truncate_words(f'No votes recorded for "{question["en"]}". Waiting on responses before analysing.', SUMMARY_MAX_WORDS),
    }


def fallback_summary(document: Mapping[str, Any], breakdown: List[Mapping[str, Any]], total: int) -> Dict[str, str]:
    if not total or not breakdown:
        return no_vote_summary(document)
    top = sorted(breakdown, key=lambda item: item.get("count") or 0, reverse=True)[0]
    question = question_translations(document)
    labels = option_labels(document, str(top.get("optionId")))
    return {
        "lb": truncate_words(f'{total} Stemmen: "{labels["lb"]}" kritt den Haaptzoustemmung op "{question["lb"]}".', SUMMARY_MAX_WORDS),
        "fr": truncate_words(f'{total} votes : "{labels["fr"]}" emporte l\'adhesion principale sur "{question["fr"]}".', SUMMARY_MAX_WORDS),
        "de": truncate_words(f'{total} Stimmen: "{labels["de"]}" setzt sich vorerst bei "{question["de"]}" durch.', SUMMARY_MAX_WORDS),
        "en": truncate_words(f'{total} votes: "{labels["en"]}" currently shapes opinion on "{question["en"]}".', SUMMARY_MAX_WORDS),
    }


def sanitize_summary(summary: Any) -> Dict[str, str]:
    """Keep non-blank per-language strings, each clipped to the word limit."""
    result: Dict[str, str] = {}
    if not isinstance(summary, Mapping):
        return result
    for language in SUPPORTED_LANGUAGES:
        raw = summary.get(language)
        if isinstance(raw, str) and raw.strip():
            result[language] = truncate_words(raw.strip(), SUMMARY_MAX_WORDS)
    return result


def _nested(document: Mapping[str, Any], *keys: str) -> Any:
    value: Any = document
    for key in keys:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def notification_copy(document: Mapping[str, Any], language: Optional[str]) -> Dict[str, str]:
    lang = normalize_language(language)
    title_candidates = (
        (_nested(document, "notification", "title"), lang),
        (_nested(document, "notification", "title"), "lb"),
        (document.get("question"), lang),
        (document.get("question"), "lb"),
    )
    body_candidates = (
        (_nested(document, "notification", "body"), lang),
        (document.get("analysis"), lang),
        (_nested(document, "article", "summary"), lang),
        (document.get("question"), lang),
        (document.get("question"), "lb"),
    )
    title = next((text for text in (localized_value(v, l) for v, l in title_candidates) if text), None)
    body = next((text for text in (localized_value(v, l) for v, l in body_candidates) if text), None)
    return {
        "title": title or DEFAULT_NOTIFICATION_TITLE,
        "body": body or DEFAULT_NOTIFICATION_BODY,
    }


__all__ = [
    "DEFAULT_NOTIFICATION_BODY",
    "DEFAULT_NOTIFICATION_TITLE",
    "SUMMARY_MAX_WORDS",
    "build_breakdown",
    "fallback_summary",
    "no_vote_summary",
    "notification_copy",
    "option_labels",
    "question_translations",
    "sanitize_summary",
    "tally_answers",
]
