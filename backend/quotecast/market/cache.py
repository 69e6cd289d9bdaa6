"""Thread-safe in-memory price caches indexed by registry position."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from threading import Lock

from .models import AssetClass
from .registry import SymbolRegistry

logger = logging.getLogger(__name__)


class LivePriceCache:
    """Latest trade price for every registry index.

    Writers: snapshot initialization (whole-array replace) and the trade
    streams or simulator (single-slot writes).
    Readers: WebSocket broadcasts and the /api/init endpoint.

    Every access holds the lock, so a snapshot is taken either entirely
    before or entirely after any replace or slot write.
    """

    def __init__(self, registry: SymbolRegistry) -> None:
        self._registry = registry
        self._prices: list[float | None] = [None] * len(registry)
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every mutation

    def replace(self, prices: Sequence[float | None]) -> None:
        """Atomically swap in a full array of prices, one per registry index."""
        if len(prices) != len(self._registry):
            raise ValueError(
                f"Expected {len(self._registry)} prices, got {len(prices)}"
            )
        new_prices = list(prices)
        with self._lock:
            self._prices = new_prices
            self._version += 1

    def apply_trade(self, symbol: str, price: float) -> bool:
        """Write one trade price into its registry slot.

        Returns False (cache untouched) if the symbol is not in the registry.
        """
        index = self._registry.index_of(symbol)
        if index is None:
            logger.warning("Trade for unknown symbol %r ignored", symbol)
            return False
        with self._lock:
            self._prices[index] = price
            self._version += 1
        return True

    def snapshot(self) -> list[float | None]:
        """Copy of the current prices in registry order."""
        with self._lock:
            return list(self._prices)

    def get_price(self, symbol: str) -> float | None:
        """Convenience: the latest price of one symbol, or None."""
        index = self._registry.index_of(symbol)
        if index is None:
            return None
        with self._lock:
            return self._prices[index]

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._prices)


class ClosePriceCache:
    """Previous-session close for every registry index.

    Each asset class contributes its closes wholesale. Replacing one class's
    contribution re-merges it with the other class's most recent contribution
    using the registry interleave, so a stock rebuild never touches a crypto
    slot and vice versa.
    """

    def __init__(self, registry: SymbolRegistry) -> None:
        self._registry = registry
        self._by_class: dict[AssetClass, list[float | None]] = {
            asset_class: [None] * len(registry.symbols(asset_class))
            for asset_class in AssetClass
        }
        self._closes: list[float | None] = [None] * len(registry)
        self._lock = Lock()
        self._version: int = 0

    def replace_class(self, asset_class: AssetClass, closes: Sequence[float | None]) -> None:
        """Replace one asset class's closes and publish the re-merged array."""
        expected = len(self._registry.symbols(asset_class))
        if len(closes) != expected:
            raise ValueError(
                f"Expected {expected} {asset_class.value} closes, got {len(closes)}"
            )
        with self._lock:
            by_class = dict(self._by_class)
            by_class[asset_class] = list(closes)
            self._closes = self._registry.interleave(by_class)
            self._by_class = by_class
            self._version += 1

    def snapshot(self) -> list[float | None]:
        """Copy of the current closes in registry order."""
        with self._lock:
            return list(self._closes)

    def class_snapshot(self, asset_class: AssetClass) -> list[float | None]:
        """Copy of one class's most recent contribution, in class order."""
        with self._lock:
            return list(self._by_class[asset_class])

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._closes)
