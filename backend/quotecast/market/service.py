"""Snapshot initialization and close rebuilds for the price caches."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime

from .cache import ClosePriceCache, LivePriceCache
from .interface import SnapshotSource
from .models import AssetClass
from .registry import SymbolRegistry
from .sessions import TradingCalendar, crypto_close_window, stock_close_window

logger = logging.getLogger(__name__)


class MarketService:
    """Fills the live and close caches from the per-class snapshot sources.

    Any UpstreamError from a source propagates to the caller, and a cache is
    only replaced once every fetch it depends on has succeeded, so a failed
    call never publishes a partial array.
    """

    def __init__(
        self,
        registry: SymbolRegistry,
        live_cache: LivePriceCache,
        close_cache: ClosePriceCache,
        sources: Mapping[AssetClass, SnapshotSource],
        calendar: TradingCalendar | None = None,
        timeout: float | None = 30.0,
    ) -> None:
        missing = [c.value for c in AssetClass if c not in sources]
        if missing:
            raise ValueError(f"No snapshot source for asset classes: {missing}")
        self.registry = registry
        self.live_cache = live_cache
        self.close_cache = close_cache
        self._sources = dict(sources)
        self._calendar = calendar or TradingCalendar()
        self._timeout = timeout

    async def initialize(self) -> None:
        """Boot sequence: closes first, then latest prices."""
        await self.initialize_closes()
        await self.initialize_prices()

    async def initialize_prices(self) -> None:
        """Fetch latest trades for both classes concurrently and swap them in as one array."""
        stock_symbols, crypto_symbols = self.registry.partition()
        stock_prices, crypto_prices = await self._bounded(
            asyncio.gather(
                self._sources[AssetClass.STOCK].latest_trade(stock_symbols),
                self._sources[AssetClass.CRYPTO].latest_trade(crypto_symbols),
            )
        )
        self.live_cache.replace(
            self.registry.interleave(
                {AssetClass.STOCK: stock_prices, AssetClass.CRYPTO: crypto_prices}
            )
        )
        logger.info(
            "Live prices initialized: %d stock, %d crypto",
            len(stock_symbols),
            len(crypto_symbols),
        )

    async def initialize_closes(self) -> None:
        await asyncio.gather(self.rebuild_stock_closes(), self.rebuild_crypto_closes())

    async def rebuild_stock_closes(self, now: datetime | None = None) -> None:
        start, end = stock_close_window(now, self._calendar)
        await self._rebuild_closes(AssetClass.STOCK, start, end)

    async def rebuild_crypto_closes(self, now: datetime | None = None) -> None:
        start, end = crypto_close_window(now)
        await self._rebuild_closes(AssetClass.CRYPTO, start, end)

    def snapshot(self) -> dict[str, list[float | None]]:
        return {
            "prices": self.live_cache.snapshot(),
            "closes": self.close_cache.snapshot(),
        }

    # --- Internal ---

    async def _rebuild_closes(self, asset_class: AssetClass, start: datetime, end: datetime) -> None:
        symbols = self.registry.symbols(asset_class)
        closes = await self._bounded(self._sources[asset_class].close_at(symbols, start, end))
        self.close_cache.replace_class(asset_class, closes)
        logger.info(
            "%s closes rebuilt for window %s - %s (%d symbols)",
            asset_class.value.capitalize(),
            start.isoformat(),
            end.isoformat(),
            len(symbols),
        )

    async def _bounded(self, awaitable):
        if self._timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._timeout)
