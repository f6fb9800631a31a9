"""Multicast push dispatch through an HTTP relay in front of the messaging provider.

The relay answers with the provider's multicast shape::

    {"successCount": 2, "failureCount": 1,
     "responses": [{"success": true}, {"success": false, "error": {"code": "..."}}]}
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from mirsinn.config import get_settings

_DEFAULT_TIMEOUT = 30
INVALID_TOKEN_CODES = (
    "messaging/invalid-registration-token",
    "messaging/registration-token-not-registered",
)


class PushConfigError(RuntimeError):
    """Raised when the push relay is not configured."""


class PushRequestError(RuntimeError):
    """Raised when the relay call fails or returns an error."""


@dataclass(frozen=True)
class SendResponse:
    success: bool
    error_code: Optional[str] = None

    @property
    def token_invalid(self) -> bool:
        code = self.error_code or ""
        return any(marker in code for marker in INVALID_TOKEN_CODES)


@dataclass
class MulticastResult:
    success_count: int
    failure_count: int
    responses: List[SendResponse] = field(default_factory=list)


def is_configured() -> bool:
    return bool(get_settings().push_relay_url)


def _parse_result(data: Mapping[str, Any], expected: int) -> MulticastResult:
    responses = []
    for item in data.get("responses") or []:
        if not isinstance(item, Mapping):
            continue
        error = item.get("error") if isinstance(item.get("error"), Mapping) else {}
        responses.append(SendResponse(success=bool(item.get("success")), error_code=error.get("code")))
    success_count = int(data.get("successCount", sum(1 for item in responses if item.success)))
    failure_count = int(data.get("failureCount", expected - success_count))
    return MulticastResult(success_count=success_count, failure_count=failure_count, responses=responses)


def send_multicast(
    tokens: Sequence[str],
    *,
    title: str,
    body: str,
    data: Optional[Dict[str, str]] = None,
    timeout: int = _DEFAULT_TIMEOUT,
) -> MulticastResult:
    settings = get_settings()
    if not settings.push_relay_url:
        raise PushConfigError("Push relay missing. Set PUSH_RELAY_URL (and PUSH_RELAY_TOKEN).")
    headers = {"Content-Type": "application/json"}
    if settings.push_relay_token:
        headers["Authorization"] = f"Bearer {settings.push_relay_token}"
    payload = {
        "tokens": list(tokens),
        "notification": {"title": title, "body": body},
        "data": data or {},
    }
    try:
        response = requests.post(settings.push_relay_url, json=payload, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise PushRequestError(f"Failed to reach push relay: {exc}") from exc
    if response.status_code != 200:
        raise PushRequestError(f"Push relay returned HTTP {response.status_code}: {response.text[:160]}")
    try:
        result = response.json()
    except ValueError as exc:
        raise PushRequestError("Push relay response was not valid JSON") from exc
    return _parse_result(result, len(tokens))


__all__ = [
    "INVALID_TOKEN_CODES",
    "MulticastResult",
    "PushConfigError",
    "PushRequestError",
    "SendResponse",
    "is_configured",
    "send_multicast",
]
