from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from mirsinn.adapters.db import get_adapter
from mirsinn.adapters.docstore import DocumentStore
from mirsinn.adapters.push_relay import MulticastResult, PushRequestError, send_multicast
from mirsinn.domain.dates import lux_date_key
from mirsinn.domain.documents import day_path
from mirsinn.domain.results import notification_copy
from mirsinn.domain.text import normalize_language
from mirsinn.workers import log_error, log_info, log_summary, worker_session

WORKER = "notify"
DEVICES_COLLECTION = "devices"
CHUNK_SIZE = 500
MISSING_QUESTION = "missing_question"
MISSING_NOTIFICATION = "missing_notification_payload"

Sender = Callable[..., MulticastResult]
Device = Tuple[str, str]  # (document path, token)


def chunked(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    return [items[index : index + size] for index in range(0, len(items), size)]


def _clear_token(store: DocumentStore, path: str) -> None:
    store.set(path, {"fcmToken": None}, merge=True)


def collect_devices(store: DocumentStore) -> Dict[str, List[Device]]:
    """Group devices with a usable token by language, clearing blank tokens."""
    buckets: Dict[str, List[Device]] = defaultdict(list)
    cleared = 0
    for path, data in store.list(DEVICES_COLLECTION):
        raw_token = data.get("fcmToken")
        token = raw_token.strip() if isinstance(raw_token, str) else None
        if not token:
            if raw_token:
                _clear_token(store, path)
                cleared += 1
            continue
        buckets[normalize_language(data.get("language"))].append((path, token))
    if cleared:
        log_info(WORKER, f"cleared {cleared} invalid device token(s)")
    return dict(buckets)


def run(
    date_key: Optional[str] = None,
    *,
    store: Optional[DocumentStore] = None,
    send: Optional[Sender] = None,
) -> Dict[str, Any] | str:
    store = store if store is not None else get_adapter()
    send = send or send_multicast
    date_key = date_key or lux_date_key()

    with worker_session(WORKER, date_key=date_key):
        day = store.get(day_path(date_key))
        if day is None:
            log_info(WORKER, f"no question available for {date_key}")
            return MISSING_QUESTION
        if not day.get("notification"):
            log_info(WORKER, f"question for {date_key} has no notification payload")
            return MISSING_NOTIFICATION

        buckets = collect_devices(store)
        successes = 0
        failures = 0
        for language, devices in buckets.items():
            copy = notification_copy(day, language)
            for devices_chunk in chunked(devices, CHUNK_SIZE):
                tokens = [token for _path, token in devices_chunk]
                try:
                    result = send(
                        tokens,
                        title=copy["title"],
                        body=copy["body"],
                        data={"dateKey": date_key, "language": language},
                    )
                except PushRequestError as exc:
                    failures += len(devices_chunk)
                    log_error(WORKER, f"{language} chunk of {len(devices_chunk)}", exc)
                    continue
                successes += result.success_count
                failures += result.failure_count
                for (path, _token), response in zip(devices_chunk, result.responses):
                    if not response.success and response.token_invalid:
                        _clear_token(store, path)

        log_summary(WORKER, ok=successes, failed=failures)
        return {"status": "sent", "sentCount": successes}


__all__ = ["CHUNK_SIZE", "MISSING_NOTIFICATION", "MISSING_QUESTION", "chunked", "collect_devices", "run"]
