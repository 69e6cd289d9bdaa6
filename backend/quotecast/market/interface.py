"""Abstract interfaces for market data providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from .models import AssetClass


class MarketDataSource(ABC):
    """Contract for push-style providers that keep the LivePriceCache current.

    Implementations write trades into a shared LivePriceCache on their own
    schedule. Downstream code never calls the data source directly for
    prices; it reads from the cache.

    Lifecycle:
        source = AlpacaTradeStream(AssetClass.CRYPTO, registry, live_cache, ...)
        await source.start()
        # ... app runs ...
        await source.stop()
    """

    @abstractmethod
    async def start(self) -> None:
        """Begin producing price updates.

        Starts a background task that writes to the LivePriceCache.
        Must be called exactly once. Calling start() twice is undefined behavior.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop the background task and release resources.

        Safe to call multiple times. After stop(), the source will not write
        to the cache again.
        """

    @abstractmethod
    def get_symbols(self) -> list[str]:
        """Return the symbols this source produces prices for."""


class SnapshotSource(ABC):
    """Contract for pull-style, point-in-time queries for one asset class.

    Both operations take the whole batch of symbols at once and return one
    value per input symbol, in input order, with None where no data exists.
    """

    asset_class: AssetClass

    @abstractmethod
    async def latest_trade(self, symbols: Sequence[str]) -> list[float | None]:
        """Latest trade price per symbol."""

    @abstractmethod
    async def close_at(
        self,
        symbols: Sequence[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[float | None]:
        """Close of the first one-minute bar inside [window_start, window_end) per symbol."""
