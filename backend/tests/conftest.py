"""Pytest configuration and fixtures."""

from collections.abc import Sequence
from datetime import datetime

import pytest

from quotecast.market.cache import ClosePriceCache, LivePriceCache
from quotecast.market.interface import SnapshotSource
from quotecast.market.models import AssetClass, RegistryEntry
from quotecast.market.registry import SymbolRegistry
from quotecast.market.service import MarketService


class FakeSnapshotSource(SnapshotSource):
    """SnapshotSource returning canned values and recording every call."""

    def __init__(self, asset_class: AssetClass, latest=None, closes=None) -> None:
        self.asset_class = asset_class
        self.latest = latest or {}
        self.closes = closes or {}
        self.error: Exception | None = None
        self.calls: list[tuple] = []

    async def latest_trade(self, symbols: Sequence[str]) -> list[float | None]:
        self.calls.append(("latest_trade", list(symbols)))
        if self.error:
            raise self.error
        return [self.latest.get(s) for s in symbols]

    async def close_at(self, symbols: Sequence[str], window_start: datetime, window_end: datetime):
        self.calls.append(("close_at", list(symbols), window_start, window_end))
        if self.error:
            raise self.error
        return [self.closes.get(s) for s in symbols]


@pytest.fixture
def event_loop_policy():
    """Use the default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture
def registry() -> SymbolRegistry:
    """SPY (stock), BTC/USD (crypto), AAPL (stock): registry indices 0, 1, 2."""
    return SymbolRegistry(
        [
            RegistryEntry("SPY", AssetClass.STOCK),
            RegistryEntry("BTC/USD", AssetClass.CRYPTO),
            RegistryEntry("AAPL", AssetClass.STOCK),
        ]
    )


@pytest.fixture
def live_cache(registry) -> LivePriceCache:
    return LivePriceCache(registry)


@pytest.fixture
def close_cache(registry) -> ClosePriceCache:
    return ClosePriceCache(registry)


@pytest.fixture
def stock_source() -> FakeSnapshotSource:
    return FakeSnapshotSource(
        AssetClass.STOCK,
        latest={"SPY": 100.0, "AAPL": 200.0},
        closes={"SPY": 99.0, "AAPL": 198.0},
    )


@pytest.fixture
def crypto_source() -> FakeSnapshotSource:
    return FakeSnapshotSource(
        AssetClass.CRYPTO,
        latest={"BTC/USD": 50000.0},
        closes={"BTC/USD": 49000.0},
    )


@pytest.fixture
def market_service(registry, live_cache, close_cache, stock_source, crypto_source) -> MarketService:
    return MarketService(
        registry,
        live_cache,
        close_cache,
        {AssetClass.STOCK: stock_source, AssetClass.CRYPTO: crypto_source},
        timeout=5.0,
    )
