from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from mirsinn.adapters.llm_client import call_chat_completion, parse_json_object
from mirsinn.config import get_settings
from mirsinn.domain.models import Source

SYSTEM_PROMPT = (
    "You are an assistant that turns Luxembourg news articles into multilingual daily poll questions. "
    "You must respond with valid JSON only."
)

QUESTION_PROMPT = """Read the news listing snapshot from {label} ({listing_url}). Pick ONE timely article about Luxembourg that people are likely to have an opinion on and craft a concise, balanced daily poll question about it.

Requirements:
- Output strict JSON with the schema:
{{
  "article": {{
    "title": "...",
    "url": "...",
    "summary": {{"lb": "...", "fr": "...", "de": "...", "en": "..."}}
  }},
  "tags": [{{"lb": "...", "fr": "...", "de": "...", "en": "..."}}],
  "question": {{"lb": "...", "fr": "...", "de": "...", "en": "..."}},
  "options": [
    {{"id": "yes", "label": {{"lb": "...", "fr": "...", "de": "...", "en": "..."}}}},
    {{"id": "no", "label": {{"lb": "...", "fr": "...", "de": "...", "en": "..."}}}}
  ],
  "analysis": {{"lb": "...", "fr": "...", "de": "...", "en": "..."}},
  "notification": {{
    "title": {{"lb": "...", "fr": "...", "de": "...", "en": "..."}},
    "body": {{"lb": "...", "fr": "...", "de": "...", "en": "..."}}
  }}
}}
- The article url must be copied from the listing snapshot; the title must match the listing.
- Provide 1 to 3 short topic tags, each under 40 characters per language.
- Provide 2 to 4 answer options with short, neutral phrasings.
- Keep each text under 200 characters.
- Every text must be written in Luxembourgish (lb), French (fr), German (de) and English (en).
- Use simple apostrophes (') and ASCII characters wherever possible.
- The question should directly relate to the article's core issue and be suitable for a quick opinion poll.
- The analysis should briefly explain why the question matters today.
- Do not select any article listed in [recent_articles] or [forbidden_articles], and do not reuse their topics.

Respond with JSON only, without explanations or code fences."""


def build_question_messages(
    source: Source,
    listing_content: str,
    context: Mapping[str, Any],
) -> List[Dict[str, str]]:
    """Construct the chat messages asking for one poll payload."""

    if not listing_content:
        raise ValueError("Listing content is required for question generation")
    prompt = QUESTION_PROMPT.format(label=source.label, listing_url=source.listing_url)
    recent = context.get("recentArticles") or []
    forbidden = context.get("forbiddenArticles") or []
    extra = {key: value for key, value in context.items() if key not in {"recentArticles", "forbiddenArticles"}}
    user_content = "\n\n".join(
        [
            prompt,
            f"[listing_snapshot]\n{listing_content}",
            f"[recent_articles]\n{json.dumps(recent, ensure_ascii=False)}",
            f"[forbidden_articles]\n{json.dumps(forbidden, ensure_ascii=False)}",
            f"[context]\n{json.dumps(extra, ensure_ascii=False)}",
        ]
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_content},
    ]


def generate_question(
    *,
    source: Source,
    listing_content: str,
    context: Mapping[str, Any],
    model: Optional[str] = None,
    retries: int = 3,
) -> Dict[str, Any]:
    """Ask the model for a poll payload; raises GenerationError on empty or non-JSON output.

    Schema completeness is not checked here.
    """

    messages = build_question_messages(source, listing_content, context)
    content = call_chat_completion(
        messages,
        model=model or get_settings().question_model_name,
        temperature=0.7,
        retries=retries,
    )
    return parse_json_object(content)


__all__ = ["build_question_messages", "generate_question"]
