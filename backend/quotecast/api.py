"""HTTP read endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .broadcast import bearer_token, token_matches
from .market.service import MarketService
from .news import NewsCache

logger = logging.getLogger(__name__)


def create_api_router(market: MarketService, news: NewsCache, token: str) -> APIRouter:
    """Create the /api router with references to the caches.

    This factory pattern lets us inject the caches without globals.
    """
    router = APIRouter(prefix="/api", tags=["market"])

    @router.get("/init")
    async def init(request: Request) -> JSONResponse:
        """Current price, close and news snapshots in one response.

        Requires ``Authorization: Bearer <token>``.
        """
        if not token_matches(bearer_token(request.headers.get("authorization")), token):
            return JSONResponse(
                {"error": "Unauthorized: Invalid or missing token"},
                status_code=401,
            )
        try:
            snapshot = market.snapshot()
            payload = {
                "prices": snapshot["prices"],
                "closes": snapshot["closes"],
                "news": news.snapshot(),
            }
        except Exception:
            logger.exception("Error in /api/init")
            return JSONResponse({"error": "Failed to fetch prices"}, status_code=500)
        return JSONResponse(payload)

    @router.get("/ping", response_class=PlainTextResponse)
    async def ping() -> str:
        """Liveness probe."""
        return "pong"

    return router
