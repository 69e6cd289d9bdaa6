"""Finance headline cache fed by the newsdata.io REST API."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any

import httpx

logger = logging.getLogger(__name__)

NEWSDATA_URL = "https://newsdata.io/api/1/latest"
NEWS_QUERY = "stock market OR wall street OR nasdaq OR s&p OR earnings OR inflation OR federal reserve"

MAX_ARTICLES = 20
SUMMARY_WORDS = 20

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class NewsArticle:
    """One headline, serialized with the keys subscribers already consume."""

    source: str
    id: str
    title: str
    time: str  # "3 hours ago", computed when fetched
    summary: str
    img: str
    url: str
    timestamp: str  # publication time as sent upstream (UTC)
    src: str  # source icon URL

    @property
    def dedup_key(self) -> str:
        return f"{self.source}||{self.title}".lower()

    @property
    def published_at(self) -> datetime:
        """Publication time as an aware UTC datetime; unparseable sorts oldest."""
        return parse_timestamp(self.timestamp) or _OLDEST

    def to_dict(self) -> dict:
        return asdict(self)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse newsdata.io ``pubDate`` ("2024-05-01 12:34:56", UTC) or ISO 8601."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace(" ", "T").replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def time_ago(published: datetime | None, now: datetime) -> str:
    if published is None:
        return "Unknown Time"
    minutes = int((now - published).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if days >= 1:
        return "1 day ago" if days == 1 else f"{days} days ago"
    if hours >= 1:
        return "1 hour ago" if hours == 1 else f"{hours} hours ago"
    return "1 minute ago" if minutes <= 1 else f"{minutes} minutes ago"


def shorten(text: str, max_words: int = SUMMARY_WORDS) -> str:
    """First ``max_words`` words, with an ellipsis when truncated."""
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + "..."


def extract_articles(payload: Any, now: datetime | None = None) -> list[NewsArticle]:
    """Normalize a newsdata.io response body into NewsArticles."""
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        return []
    now = now or datetime.now(timezone.utc)

    articles = []
    for item in payload["results"]:
        if not isinstance(item, dict):
            continue
        pub_date = item.get("pubDate") or ""
        articles.append(
            NewsArticle(
                source=item.get("source_name") or "Unknown Source",
                id=item.get("article_id") or "",
                title=item.get("title") or "Untitled",
                time=time_ago(parse_timestamp(pub_date), now),
                summary=shorten(item.get("description") or "No summary available."),
                img=item.get("image_url") or "",
                url=item.get("link") or "",
                timestamp=pub_date,
                src=item.get("source_icon") or "",
            )
        )
    return articles


class NewsCache:
    """Newest-first, deduplicated, bounded list of headlines."""

    def __init__(self, max_articles: int = MAX_ARTICLES) -> None:
        self._articles: list[NewsArticle] = []
        self._max = max_articles
        self._lock = Lock()

    def merge(self, fresh: Iterable[NewsArticle]) -> list[NewsArticle]:
        """Merge a fetched batch into the cache and return the new contents.

        Articles are keyed by case-insensitive (source, title). Duplicates
        within the batch and against the cache are dropped before merging,
        so merging the same batch twice changes nothing.
        """
        with self._lock:
            seen = {article.dedup_key for article in self._articles}
            unique: list[NewsArticle] = []
            for article in fresh:
                if article.dedup_key in seen:
                    continue
                seen.add(article.dedup_key)
                unique.append(article)

            merged = unique + self._articles
            merged.sort(key=lambda a: a.published_at, reverse=True)
            self._articles = merged[: self._max]
            return list(self._articles)

    def snapshot(self) -> list[dict]:
        with self._lock:
            return [article.to_dict() for article in self._articles]

    def __len__(self) -> int:
        with self._lock:
            return len(self._articles)


class NewsFetcher:
    """Pulls the latest finance headlines and merges them into a NewsCache."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        cache: NewsCache,
        url: str = NEWSDATA_URL,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._cache = cache
        self._url = url

    @property
    def cache(self) -> NewsCache:
        return self._cache

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def refresh(self) -> None:
        """Fetch and merge. Failures are logged; the cache keeps its contents."""
        if not self.enabled:
            logger.debug("News refresh skipped: no NEWSDATA_API_KEY")
            return
        params = {
            "apikey": self._api_key,
            "q": NEWS_QUERY,
            "category": "business",
            "language": "en",
            "country": "us",
        }
        try:
            response = await self._client.get(self._url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error fetching finance news: %r", e)
            return

        articles = self._cache.merge(extract_articles(payload))
        logger.info("News refreshed: %d articles cached", len(articles))
