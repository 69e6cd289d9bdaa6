"""Tests for the /api routes."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from quotecast.api import create_api_router
from quotecast.market.models import AssetClass
from quotecast.news import NewsArticle, NewsCache

TOKEN = "secret-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def news_cache() -> NewsCache:
    cache = NewsCache()
    cache.merge(
        [
            NewsArticle(
                source="Reuters",
                id="1",
                title="Stocks rally",
                time="1 hour ago",
                summary="Markets rose.",
                img="",
                url="https://news.test/1",
                timestamp="2025-03-14 11:00:00",
                src="",
            )
        ]
    )
    return cache


@pytest.fixture
def client(market_service, news_cache) -> TestClient:
    app = FastAPI()
    app.include_router(create_api_router(market_service, news_cache, TOKEN))
    return TestClient(app)


class TestInit:
    """GET /api/init."""

    def test_returns_all_snapshots(self, client, live_cache, close_cache):
        """Test that prices, closes and news come back in one payload."""
        live_cache.replace([100.0, 50000.0, 200.0])
        close_cache.replace_class(AssetClass.STOCK, [99.0, 198.0])

        response = client.get("/api/init", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["prices"] == [100.0, 50000.0, 200.0]
        assert body["closes"] == [99.0, None, 198.0]
        assert [a["title"] for a in body["news"]] == ["Stocks rally"]

    def test_missing_token(self, client):
        """Test that a request without a token is rejected."""
        response = client.get("/api/init")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized: Invalid or missing token"}

    def test_wrong_token(self, client):
        """Test that a wrong token is rejected."""
        response = client.get("/api/init", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_snapshot_failure(self, client, market_service):
        """Test that an internal failure maps to a 500 with an error body."""
        with patch.object(market_service, "snapshot", side_effect=RuntimeError("boom")):
            response = client.get("/api/init", headers=AUTH)
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch prices"}


class TestPing:
    """GET /api/ping."""

    def test_pong_without_token(self, client):
        """Test that the liveness probe needs no token."""
        response = client.get("/api/ping")
        assert response.status_code == 200
        assert response.text == "pong"
