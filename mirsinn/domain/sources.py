from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

from .models import LISTING_STRATEGIES, Source

LOGGER = logging.getLogger(__name__)

DEFAULT_SOURCES: Sequence[Source] = (
    Source(id="rtl", label="RTL.lu", listing_url="https://www.rtl.lu/news/national"),
    Source(id="lessentiel", label="L'essentiel", listing_url="https://www.lessentiel.lu/fr/luxembourg"),
    Source(id="wort", label="Luxemburger Wort", listing_url="https://www.wort.lu/luxemburg"),
    Source(id="tageblatt", label="Tageblatt", listing_url="https://www.tageblatt.lu/category/headlines/"),
    Source(id="luxtimes", label="Luxembourg Times", listing_url="https://www.luxtimes.lu/luxembourg"),
)


def parse_sources(raw: Any) -> List[Source]:
    if not isinstance(raw, list):
        return []
    sources: List[Source] = []
    seen = set()
    for item in raw:
        if not isinstance(item, dict):
            continue
        source_id = str(item.get("id") or "").strip()
        if not source_id or source_id in seen:
            continue
        strategy = str(item.get("strategy") or "reader").strip().lower()
        if strategy not in LISTING_STRATEGIES:
            LOGGER.warning("Unknown listing strategy %r for %s, using reader", strategy, source_id)
            strategy = "reader"
        seen.add(source_id)
        sources.append(
            Source(
                id=source_id,
                label=str(item.get("label") or source_id),
                listing_url=str(item.get("listingUrl") or item.get("listing_url") or "").strip(),
                strategy=strategy,
            )
        )
    return sources


def load_sources(path: Optional[Path] = None) -> List[Source]:
    """Return configured sources, falling back to the built-in list."""
    if path is None or not path.exists():
        return list(DEFAULT_SOURCES)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning("Ignoring unreadable sources file %s: %s", path, exc)
        return list(DEFAULT_SOURCES)
    return parse_sources(data) or list(DEFAULT_SOURCES)


__all__ = ["DEFAULT_SOURCES", "load_sources", "parse_sources"]
