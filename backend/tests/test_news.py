"""Tests for the news cache and the newsdata.io fetcher."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx
from httpx import Response

from quotecast.news import (
    MAX_ARTICLES,
    NewsArticle,
    NewsCache,
    NewsFetcher,
    extract_articles,
    parse_timestamp,
    shorten,
    time_ago,
)

NEWS_HOST = "newsdata.io"
NEWS_PATH = "/api/1/latest"
NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


def _article(title: str, source: str = "Reuters", hours_ago: float = 1) -> NewsArticle:
    published = NOW - timedelta(hours=hours_ago)
    return NewsArticle(
        source=source,
        id=title.lower(),
        title=title,
        time="",
        summary="",
        img="",
        url="",
        timestamp=published.strftime("%Y-%m-%d %H:%M:%S"),
        src="",
    )


class TestNewsCache:
    """Merge semantics of the bounded headline list."""

    def test_newest_first(self):
        """Test that merged articles are ordered by publication time, newest first."""
        cache = NewsCache()
        cache.merge([_article("old", hours_ago=5), _article("new", hours_ago=1), _article("mid", hours_ago=3)])
        assert [a["title"] for a in cache.snapshot()] == ["new", "mid", "old"]

    def test_duplicates_dropped_case_insensitive(self):
        """Test that (source, title) dedup ignores case, within and across batches."""
        cache = NewsCache()
        cache.merge([_article("Fed holds rates"), _article("FED HOLDS RATES", source="reuters")])
        cache.merge([_article("fed holds rates", source="REUTERS", hours_ago=0.5)])
        assert len(cache) == 1

    def test_same_title_different_source_kept(self):
        """Test that the source is part of the identity."""
        cache = NewsCache()
        cache.merge([_article("Fed holds rates"), _article("Fed holds rates", source="Bloomberg")])
        assert len(cache) == 2

    def test_merge_is_idempotent(self):
        """Test that merging the same batch twice leaves the cache unchanged."""
        cache = NewsCache()
        batch = [_article(f"story {i}", hours_ago=i) for i in range(5)]
        cache.merge(batch)
        first = cache.snapshot()
        cache.merge(batch)
        assert cache.snapshot() == first

    def test_capped_at_max_articles(self):
        """Test that only the newest MAX_ARTICLES survive."""
        cache = NewsCache()
        cache.merge([_article(f"story {i}", hours_ago=i) for i in range(30)])
        titles = [a["title"] for a in cache.snapshot()]
        assert len(titles) == MAX_ARTICLES
        assert titles[0] == "story 0"
        assert titles[-1] == f"story {MAX_ARTICLES - 1}"

    def test_unparseable_timestamp_sorts_last(self):
        """Test that an article without a usable date sorts as oldest."""
        cache = NewsCache()
        undated = NewsArticle("X", "1", "undated", "", "", "", "", "yesterday-ish", "")
        cache.merge([undated, _article("dated", hours_ago=48)])
        assert [a["title"] for a in cache.snapshot()] == ["dated", "undated"]

    def test_snapshot_wire_keys(self):
        """Test the serialized field names subscribers consume."""
        cache = NewsCache()
        cache.merge([_article("headline")])
        assert set(cache.snapshot()[0]) == {
            "source", "id", "title", "time", "summary", "img", "url", "timestamp", "src",
        }


class TestHelpers:
    """Normalization helpers."""

    def test_parse_timestamp_formats(self):
        """Test newsdata.io and ISO 8601 timestamps, both read as UTC."""
        assert parse_timestamp("2025-03-14 11:00:00") == datetime(2025, 3, 14, 11, tzinfo=timezone.utc)
        assert parse_timestamp("2025-03-14T11:00:00Z") == datetime(2025, 3, 14, 11, tzinfo=timezone.utc)
        assert parse_timestamp("garbage") is None
        assert parse_timestamp(None) is None

    def test_time_ago(self):
        """Test the relative time strings."""
        assert time_ago(NOW - timedelta(seconds=30), NOW) == "1 minute ago"
        assert time_ago(NOW - timedelta(minutes=45), NOW) == "45 minutes ago"
        assert time_ago(NOW - timedelta(minutes=61), NOW) == "1 hour ago"
        assert time_ago(NOW - timedelta(hours=5), NOW) == "5 hours ago"
        assert time_ago(NOW - timedelta(hours=30), NOW) == "1 day ago"
        assert time_ago(NOW - timedelta(days=3), NOW) == "3 days ago"
        assert time_ago(None, NOW) == "Unknown Time"

    def test_shorten(self):
        """Test that long summaries are cut to whole words."""
        assert shorten("one two three", max_words=5) == "one two three"
        assert shorten("one two three four", max_words=2) == "one two..."

    def test_extract_articles_defaults(self):
        """Test that missing fields get the fallback values."""
        articles = extract_articles({"results": [{"pubDate": "2025-03-14 10:00:00"}]}, now=NOW)
        assert len(articles) == 1
        article = articles[0]
        assert article.source == "Unknown Source"
        assert article.title == "Untitled"
        assert article.summary == "No summary available."
        assert article.time == "2 hours ago"

    def test_extract_articles_maps_fields(self):
        """Test the newsdata.io field mapping."""
        payload = {
            "results": [
                {
                    "article_id": "abc",
                    "title": "Stocks rally",
                    "source_name": "Reuters",
                    "description": "Markets rose.",
                    "image_url": "https://img.test/a.png",
                    "link": "https://news.test/a",
                    "pubDate": "2025-03-14 11:30:00",
                    "source_icon": "https://img.test/icon.png",
                },
                "not an article",
            ]
        }
        [article] = extract_articles(payload, now=NOW)
        assert article.to_dict() == {
            "source": "Reuters",
            "id": "abc",
            "title": "Stocks rally",
            "time": "30 minutes ago",
            "summary": "Markets rose.",
            "img": "https://img.test/a.png",
            "url": "https://news.test/a",
            "timestamp": "2025-03-14 11:30:00",
            "src": "https://img.test/icon.png",
        }

    def test_extract_articles_bad_payload(self):
        """Test that an unexpected body yields no articles."""
        assert extract_articles({"status": "error"}) == []
        assert extract_articles(["results"]) == []


@pytest.mark.asyncio
class TestNewsFetcher:
    """Refresh against a mocked newsdata.io."""

    async def test_refresh_merges_results(self):
        """Test that a successful fetch lands in the cache."""
        cache = NewsCache()
        with respx.mock() as router:
            route = router.get(host=NEWS_HOST, path=NEWS_PATH).mock(
                return_value=Response(
                    200,
                    json={"results": [{"title": "Stocks rally", "source_name": "Reuters"}]},
                )
            )
            async with httpx.AsyncClient() as client:
                await NewsFetcher(client, "news-key", cache).refresh()

        assert [a["title"] for a in cache.snapshot()] == ["Stocks rally"]
        params = route.calls.last.request.url.params
        assert params["apikey"] == "news-key"
        assert params["category"] == "business"
        assert params["language"] == "en"
        assert params["country"] == "us"

    async def test_failure_keeps_previous_contents(self):
        """Test that an upstream error leaves the cache as it was."""
        cache = NewsCache()
        cache.merge([_article("cached")])
        with respx.mock() as router:
            router.get(host=NEWS_HOST, path=NEWS_PATH).mock(return_value=Response(500))
            async with httpx.AsyncClient() as client:
                await NewsFetcher(client, "news-key", cache).refresh()

        assert [a["title"] for a in cache.snapshot()] == ["cached"]

    async def test_non_json_body_is_a_failure(self):
        """Test that an unparseable body is logged, not raised."""
        cache = NewsCache()
        with respx.mock() as router:
            router.get(host=NEWS_HOST, path=NEWS_PATH).mock(return_value=Response(200, text="<html>"))
            async with httpx.AsyncClient() as client:
                await NewsFetcher(client, "news-key", cache).refresh()

        assert len(cache) == 0

    async def test_no_api_key_skips_request(self):
        """Test that without a key no request is made."""
        cache = NewsCache()
        with respx.mock(assert_all_called=False) as router:
            route = router.get(host=NEWS_HOST, path=NEWS_PATH).mock(return_value=Response(200, json={"results": []}))
            async with httpx.AsyncClient() as client:
                fetcher = NewsFetcher(client, "", cache)
                assert not fetcher.enabled
                await fetcher.refresh()

        assert not route.called
