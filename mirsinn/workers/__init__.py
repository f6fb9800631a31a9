from __future__ import annotations

import sys
from contextlib import contextmanager
from time import perf_counter
from typing import Iterator, Optional


def log_info(worker: str, message: str) -> None:
    print(f"[{worker}] {message}", flush=True)


def log_warning(worker: str, message: str) -> None:
    print(f"[{worker}] WARN {message}", file=sys.stderr, flush=True)


def log_error(worker: str, item: str, error: BaseException) -> None:
    print(f"[{worker}] ERROR {item}: {type(error).__name__}: {error}", file=sys.stderr, flush=True)


def log_summary(worker: str, *, ok: int, failed: Optional[int] = None, skipped: Optional[int] = None) -> None:
    parts = [f"ok={ok}"]
    if failed is not None:
        parts.append(f"failed={failed}")
    if skipped is not None:
        parts.append(f"skipped={skipped}")
    log_info(worker, "result: " + " ".join(parts))


@contextmanager
def worker_session(worker: str, *, date_key: Optional[str] = None) -> Iterator[None]:
    start = perf_counter()
    date_note = f" (date={date_key})" if date_key else ""
    log_info(worker, f"start{date_note}")
    try:
        yield
    finally:
        log_info(worker, f"finished in {perf_counter() - start:.2f}s")


__all__ = ["log_error", "log_info", "log_summary", "log_warning", "worker_session"]
