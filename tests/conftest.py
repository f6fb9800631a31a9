from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import pytest

from mirsinn.domain.errors import ListingFetchError
from mirsinn.domain.models import QuestionJobConfig, Source


def localized(prefix: str) -> Dict[str, str]:
    return {
        "lb": f"{prefix} (lb)",
        "fr": f"{prefix} (fr)",
        "de": f"{prefix} (de)",
        "en": f"{prefix} (en)",
    }


def build_payload(
    n: int,
    *,
    url: Optional[str] = None,
    title: Optional[str] = None,
    question: Any = None,
    options: Any = None,
) -> Dict[str, Any]:
    return {
        "article": {
            "title": title or f"Article {n}",
            "url": url or f"https://news.example.lu/a/{n}",
            "summary": localized(f"Summary {n}"),
        },
        "tags": [localized(f"Tag {n}"), localized(f"Tag {n}")],
        "question": question if question is not None else localized(f"Question {n}?"),
        "options": options
        if options is not None
        else [
            {"id": "yes", "label": localized("Yes")},
            {"id": "no", "label": localized("No")},
        ],
        "analysis": localized(f"Analysis {n}"),
        "notification": {"title": localized(f"Title {n}"), "body": localized(f"Body {n}")},
    }


class ScriptedGenerator:
    """Returns queued payloads per source id; the last entry repeats once the queue runs dry.

    Entries that are exceptions are raised instead of returned.
    """

    def __init__(self, script: Mapping[str, Sequence[Any]]) -> None:
        self._script = {key: list(values) for key, values in script.items()}
        self._positions: Dict[str, int] = {}
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, *, source: Source, listing_content: str, context: Mapping[str, Any]) -> Any:
        self.calls.append({"source": source.id, "listing": listing_content, "context": dict(context)})
        queue = self._script[source.id]
        position = self._positions.get(source.id, 0)
        self._positions[source.id] = position + 1
        item = queue[min(position, len(queue) - 1)]
        if isinstance(item, BaseException):
            raise item
        return item

    def calls_for(self, source_id: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["source"] == source_id]


class CountingFetcher:
    def __init__(self, failing: Sequence[str] = ()) -> None:
        self.failing = set(failing)
        self.calls: List[str] = []

    def __call__(self, source: Source) -> str:
        self.calls.append(source.id)
        if source.id in self.failing:
            raise ListingFetchError(source.id, "listing returned HTTP 503", status_code=503)
        return f"# {source.label}\n" + "listing line\n" * 300


def sequential_ids(prefix: str = "q") -> Callable[[], str]:
    counter = {"value": 0}

    def _next() -> str:
        counter["value"] += 1
        return f"{prefix}{counter['value']}"

    return _next


@pytest.fixture
def sources() -> List[Source]:
    return [
        Source(id=f"s{index}", label=f"Source {index}", listing_url=f"https://source{index}.example.lu/news")
        for index in range(1, 6)
    ]


@pytest.fixture
def job_config() -> QuestionJobConfig:
    return QuestionJobConfig(model="test-model", prompt_version="2025-02-20")


FIXED_NOW = "2025-02-20T06:00:00+00:00"
