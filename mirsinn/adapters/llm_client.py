from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Dict, List, Optional

import requests

from mirsinn.config import get_settings
from mirsinn.domain.errors import GenerationError

LOGGER = logging.getLogger(__name__)
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}
_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _message_content(data: Any) -> str:
    """Return the first choice's text; any other response shape is a GenerationError."""
    choices = data.get("choices") if isinstance(data, dict) else None
    choice = choices[0] if isinstance(choices, list) and choices else None
    message = choice.get("message") if isinstance(choice, dict) else None
    if not isinstance(message, dict):
        raise GenerationError("Unexpected chat completion response shape")
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        raise GenerationError("Model returned an empty response")
    return content.strip()


def call_chat_completion(
    messages: List[Dict[str, str]],
    *,
    model: str,
    temperature: float,
    json_mode: bool = True,
    retries: int = 3,
    timeout: Optional[int] = None,
) -> str:
    """POST to the OpenAI-compatible chat completions endpoint and return the message text."""

    settings = get_settings()
    api_key = settings.openai_api_key
    if not api_key:
        raise RuntimeError("Missing OPENAI_API_KEY environment variable")

    url = f"{settings.openai_base_url.rstrip('/')}/chat/completions"
    payload: Dict[str, Any] = {
        "model": model,
        "temperature": temperature,
        "messages": messages,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    resolved_timeout = timeout or settings.openai_timeout

    backoff = 1.0
    last_error: Optional[Exception] = None
    for _ in range(max(1, retries)):
        try:
            resp = requests.post(url, json=payload, headers=headers, timeout=resolved_timeout)
            if resp.status_code == 200:
                return _message_content(resp.json())
            if resp.status_code in _RETRYABLE_STATUS:
                last_error = GenerationError(f"API {resp.status_code}: {resp.text[:160]}")
                time.sleep(backoff)
                backoff = min(backoff * 2, 8)
                continue
            last_error = GenerationError(f"API {resp.status_code}: {resp.text[:160]}")
            break
        except GenerationError:
            raise
        except (requests.RequestException, ValueError) as exc:
            last_error = exc
        time.sleep(backoff)
        backoff = min(backoff * 2, 8)
    if isinstance(last_error, GenerationError):
        raise last_error
    raise GenerationError(f"Chat completion call failed: {last_error}") from last_error


def parse_json_object(content: str) -> Dict[str, Any]:
    cleaned = (content or "").strip()
    if not cleaned:
        raise GenerationError("Model returned an empty response")
    match = _FENCE_PATTERN.match(cleaned)
    if match:
        cleaned = match.group(1)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        LOGGER.error("Failed to parse model JSON: %s", cleaned[:200])
        raise GenerationError(f"Model returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise GenerationError("Model JSON is not an object")
    return data


__all__ = ["call_chat_completion", "parse_json_object"]
