"""Factories for creating snapshot sources and market data sources."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from .cache import LivePriceCache
from .interface import MarketDataSource, SnapshotSource
from .models import AssetClass
from .registry import SymbolRegistry

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


def create_snapshot_sources(
    settings: Settings,
    client: httpx.AsyncClient,
) -> dict[AssetClass, SnapshotSource]:
    """One snapshot source per asset class.

    - ALPACA_KEY_ID and ALPACA_SECRET_KEY set -> AlpacaSnapshotFetcher
    - Otherwise -> SimulatedSnapshotSource
    """
    if settings.use_alpaca:
        from .fetcher import AlpacaSnapshotFetcher

        logger.info("Snapshot source: Alpaca REST (feed=%s)", settings.stock_feed)
        return {
            asset_class: AlpacaSnapshotFetcher(
                asset_class,
                client,
                key_id=settings.alpaca_key_id,
                secret=settings.alpaca_secret_key,
                stock_feed=settings.stock_feed,
            )
            for asset_class in AssetClass
        }

    from .simulator import SimulatedSnapshotSource

    logger.info("Snapshot source: simulated seed prices")
    return {asset_class: SimulatedSnapshotSource(asset_class) for asset_class in AssetClass}


def create_market_data_sources(
    settings: Settings,
    registry: SymbolRegistry,
    live_cache: LivePriceCache,
) -> list[MarketDataSource]:
    """Sources that keep the live cache moving after initialization.

    - Credentials set -> one AlpacaTradeStream per asset class with symbols
    - Otherwise -> a single SimulatorDataSource

    Returns unstarted sources. Caller must await source.start().
    """
    if settings.use_alpaca:
        from .stream_client import AlpacaTradeStream, default_stream_url

        logger.info("Market data source: Alpaca trade streams (real data)")
        return [
            AlpacaTradeStream(
                asset_class,
                registry,
                live_cache,
                key_id=settings.alpaca_key_id,
                secret=settings.alpaca_secret_key,
                url=default_stream_url(asset_class, settings.stock_feed),
            )
            for asset_class in AssetClass
            if registry.symbols(asset_class)
        ]

    from .simulator import SimulatorDataSource

    logger.info("Market data source: GBM Simulator")
    return [SimulatorDataSource(registry, live_cache)]
