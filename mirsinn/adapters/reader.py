"""Readable-text snapshots of news listing pages."""
from __future__ import annotations

import logging
import re
import time
from typing import Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from mirsinn.config import get_settings
from mirsinn.domain.errors import ListingFetchError
from mirsinn.domain.models import Source

LOGGER = logging.getLogger(__name__)
USER_AGENT = "mir-sinn-question-bot/1.0"
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}
_BLANK_LINES = re.compile(r"\n\s*\n+")


def _session() -> requests.Session:
    s = requests.Session()
    s.headers.update({
        "User-Agent": USER_AGENT,
        "Accept-Language": "lb,fr;q=0.9,de;q=0.8,en;q=0.7",
    })
    return s


def html_to_text(html: str, base_url: str) -> str:
    """Flatten a listing page to text, keeping links as ``[title](url)``."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "svg", "iframe"]):
        tag.decompose()
    for anchor in soup.find_all("a"):
        href = (anchor.get("href") or "").strip()
        label = " ".join(anchor.get_text(" ", strip=True).split())
        if not href or not label or href.startswith(("#", "javascript:", "mailto:")):
            continue
        anchor.replace_with(f"[{label}]({urljoin(base_url, href)})")
    text = soup.get_text("\n", strip=True)
    return _BLANK_LINES.sub("\n\n", text).strip()


def _reader_url(listing_url: str) -> str:
    base = get_settings().reader_base_url
    if not base.endswith("/"):
        base += "/"
    return f"{base}{listing_url}"


def _get(session: requests.Session, source: Source, url: str, *, headers: dict, timeout: int, retries: int) -> requests.Response:
    backoff = 1.0
    last_error: Optional[Exception] = None
    for _ in range(max(1, retries)):
        try:
            response = session.get(url, headers=headers, timeout=timeout)
        except requests.RequestException as exc:
            last_error = exc
        else:
            if response.status_code == 200:
                return response
            if response.status_code not in _RETRYABLE_STATUS:
                raise ListingFetchError(
                    source.id,
                    f"listing returned HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            last_error = ListingFetchError(
                source.id,
                f"listing returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        time.sleep(backoff)
        backoff = min(backoff * 2, 8)
    if isinstance(last_error, ListingFetchError):
        raise last_error
    raise ListingFetchError(source.id, f"listing unreachable: {last_error}") from last_error


def fetch_listing_content(source: Source, *, retries: int = 2, timeout: Optional[int] = None) -> str:
    """Return a readable text snapshot of ``source``'s listing page."""
    if not source.listing_url:
        raise ListingFetchError(source.id, "source has no listing URL")

    settings = get_settings()
    resolved_timeout = timeout or settings.listing_timeout
    session = _session()
    if source.strategy == "html":
        LOGGER.info("Fetching listing %s (html)", source.listing_url)
        response = _get(session, source, source.listing_url, headers={}, timeout=resolved_timeout, retries=retries)
        text = html_to_text(response.text, source.listing_url)
    else:
        headers = {"Accept": "text/plain", "X-Return-Format": "markdown"}
        if settings.reader_api_key:
            headers["Authorization"] = f"Bearer {settings.reader_api_key}"
        LOGGER.info("Fetching listing %s (reader)", source.listing_url)
        response = _get(session, source, _reader_url(source.listing_url), headers=headers, timeout=resolved_timeout, retries=retries)
        text = response.text.strip()

    if not text:
        raise ListingFetchError(source.id, "listing snapshot is empty")
    return text


__all__ = ["fetch_listing_content", "html_to_text"]
