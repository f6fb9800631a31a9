"""Domain dataclasses shared across workers and adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

LISTING_STRATEGIES = ("reader", "html")


@dataclass(frozen=True, slots=True)
class Source:
    id: str
    label: str
    listing_url: str
    strategy: str = "reader"

    def to_reference(self) -> Dict[str, str]:
        return {"id": self.id, "label": self.label, "url": self.listing_url}


@dataclass(frozen=True, slots=True)
class RecentArticle:
    date_key: Optional[str]
    title: Optional[str]
    url: Optional[str]

    def to_context(self) -> Dict[str, Optional[str]]:
        return {"dateKey": self.date_key, "title": self.title, "url": self.url}


@dataclass(frozen=True, slots=True)
class ForbiddenArticle:
    title: Optional[str]
    url: Optional[str]
    reason: str

    def to_context(self) -> Dict[str, Optional[str]]:
        return {"title": self.title, "url": self.url, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class QuestionEntry:
    id: str
    path: str
    document: Dict[str, Any]

    @property
    def order(self) -> int:
        return int(self.document.get("order") or 0)


@dataclass(frozen=True, slots=True)
class QuestionJobConfig:
    model: str
    prompt_version: str
    target_count: int = 5
    attempts_per_source: int = 3
    # tunable: the fallback pass stops after len(sources) * fallback_multiplier controller runs
    fallback_multiplier: int = 6
    recent_days: int = 3
    listing_excerpt_chars: int = 2000

    @classmethod
    def from_settings(cls, settings: Any) -> "QuestionJobConfig":
        return cls(
            model=settings.question_model_name,
            prompt_version=settings.prompt_version,
            target_count=settings.question_target_count,
            attempts_per_source=settings.question_attempts_per_source,
            fallback_multiplier=settings.question_fallback_multiplier,
            recent_days=settings.recent_article_days,
        )


@dataclass(slots=True)
class JobResult:
    status: str
    date_key: str
    question_ids: Sequence[str] = field(default_factory=list)
    controller_runs: int = 0
    degraded: bool = False
    entries: Tuple[QuestionEntry, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "dateKey": self.date_key,
            "questionIds": list(self.question_ids),
            "controllerRuns": self.controller_runs,
            "degraded": self.degraded,
        }


__all__ = [
    "ForbiddenArticle",
    "JobResult",
    "LISTING_STRATEGIES",
    "QuestionEntry",
    "QuestionJobConfig",
    "RecentArticle",
    "Source",
]
