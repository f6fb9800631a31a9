from __future__ import annotations

from typing import Any, List, Mapping

from mirsinn.adapters.docstore import DocumentStore
from mirsinn.domain.dates import previous_date_keys
from mirsinn.domain.documents import day_path, items_path
from mirsinn.domain.models import RecentArticle
from mirsinn.domain.text import normalize_text
from mirsinn.workers import log_warning

WORKER = "recent_articles"


def _article_of(document: Mapping[str, Any], date_key: str) -> RecentArticle | None:
    article = document.get("article")
    if not isinstance(article, Mapping):
        return None
    title = normalize_text(article.get("title")) or None
    url = normalize_text(article.get("url")) or None
    if not title and not url:
        return None
    return RecentArticle(date_key=date_key, title=title, url=url)


def fetch_recent_articles(store: DocumentStore, current_date_key: str, days: int) -> List[RecentArticle]:
    """Collect articles used on the ``days`` calendar days before ``current_date_key``.

    Both the day-level article and every per-question article are returned;
    duplicates across dates are kept. Days without documents contribute nothing.
    """
    articles: List[RecentArticle] = []
    for date_key in previous_date_keys(current_date_key, days):
        try:
            day = store.get(day_path(date_key))
            if day is None:
                continue
            day_article = _article_of(day, date_key)
            if day_article:
                articles.append(day_article)
            for _path, document in store.list(items_path(date_key)):
                item_article = _article_of(document, date_key)
                if item_article:
                    articles.append(item_article)
        except Exception as exc:  # history reads are best effort
            log_warning(WORKER, f"failed to read history for {date_key}: {exc}")
    return articles


__all__ = ["fetch_recent_articles"]
