"""FastAPI application: boot sequence, routers, background tasks."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import create_api_router
from .broadcast import Broadcaster, create_ws_router
from .config import Settings, load_settings
from .market import (
    ClosePriceCache,
    LivePriceCache,
    MarketService,
    SymbolRegistry,
    create_market_data_sources,
    create_snapshot_sources,
)
from .market.sessions import TradingCalendar
from .news import NewsCache, NewsFetcher
from .scheduler import MarketScheduler

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app. All market state is created here and injected into routers.

    Boot order inside the lifespan: close cache, live prices, news. A failed
    close or price fetch aborts startup rather than serving an incomplete
    snapshot; a failed news fetch only leaves the news cache empty. Trade
    streams and the scheduler start after the caches are filled.
    """
    settings = settings or load_settings()

    registry = SymbolRegistry.from_config(settings.symbols)
    live_cache = LivePriceCache(registry)
    close_cache = ClosePriceCache(registry)
    news_cache = NewsCache()
    client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))

    market = MarketService(
        registry,
        live_cache,
        close_cache,
        create_snapshot_sources(settings, client),
        calendar=TradingCalendar().with_holidays(settings.extra_holidays),
        timeout=settings.boot_timeout_seconds,
    )
    news = NewsFetcher(client, settings.newsdata_api_key, news_cache)
    broadcaster = Broadcaster(market, news)
    sources = create_market_data_sources(settings, registry, live_cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        scheduler = MarketScheduler(
            market,
            broadcaster,
            price_interval=settings.price_broadcast_seconds,
            news_interval=settings.news_broadcast_seconds,
        )
        try:
            await market.initialize()
            await news.refresh()
            for source in sources:
                await source.start()
            scheduler.start()
            logger.info("quotecast ready: %d symbols", len(registry))
            yield
        finally:
            scheduler.stop()
            for source in sources:
                await source.stop()
            await client.aclose()

    app = FastAPI(title="quotecast", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET"],
        allow_headers=["Authorization"],
    )
    app.include_router(create_api_router(market, news_cache, settings.token))
    app.include_router(create_ws_router(broadcaster, settings.token, settings.allowed_origins))

    app.state.settings = settings
    app.state.registry = registry
    app.state.market = market
    app.state.broadcaster = broadcaster
    app.state.sources = sources
    return app


def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("websockets").setLevel(logging.WARNING)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
