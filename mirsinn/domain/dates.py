from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

LUX_TZ = ZoneInfo("Europe/Luxembourg")
DATE_KEY_FORMAT = "%m-%d-%Y"


def lux_date_key(moment: Optional[datetime] = None) -> str:
    """Return the ``MM-DD-YYYY`` key of the Luxembourg calendar day containing ``moment``."""
    current = moment or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(LUX_TZ).strftime(DATE_KEY_FORMAT)


def parse_date_key(date_key: str) -> date:
    try:
        return datetime.strptime(date_key, DATE_KEY_FORMAT).date()
    except ValueError as exc:
        raise ValueError(f"Invalid date key {date_key!r}, expected MM-DD-YYYY") from exc


def format_date_key(value: date) -> str:
    return value.strftime(DATE_KEY_FORMAT)


def shift_date_key(date_key: str, days: int) -> str:
    return format_date_key(parse_date_key(date_key) + timedelta(days=days))


def previous_date_keys(date_key: str, days: int) -> List[str]:
    """Keys of the ``days`` calendar days before ``date_key``, most recent first."""
    keys = []
    for offset in range(1, max(0, days) + 1):
        key = shift_date_key(date_key, -offset)
        if key != date_key:
            keys.append(key)
    return keys


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = [
    "DATE_KEY_FORMAT",
    "LUX_TZ",
    "format_date_key",
    "lux_date_key",
    "parse_date_key",
    "previous_date_keys",
    "shift_date_key",
    "utc_now_iso",
]
