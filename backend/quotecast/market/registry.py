"""Fixed, ordered symbol universe shared by every cache."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import TypeVar

from .models import AssetClass, RegistryEntry

T = TypeVar("T")

# Default universe, in the order clients index into the price arrays.
DEFAULT_SYMBOLS: list[dict[str, str]] = [
    {"symbol": "SPY", "type": "stock"},
    {"symbol": "QQQ", "type": "stock"},
    {"symbol": "IWM", "type": "stock"},
    {"symbol": "AAPL", "type": "stock"},
    {"symbol": "MSFT", "type": "stock"},
    {"symbol": "BTC/USD", "type": "crypto"},
    {"symbol": "ETH/USD", "type": "crypto"},
    {"symbol": "NVDA", "type": "stock"},
    {"symbol": "META", "type": "stock"},
    {"symbol": "AMZN", "type": "stock"},
    {"symbol": "TSLA", "type": "stock"},
    {"symbol": "GOOGL", "type": "stock"},
    {"symbol": "DIA", "type": "stock"},
    {"symbol": "VTI", "type": "stock"},
    {"symbol": "GLD", "type": "stock"},
    {"symbol": "SOL/USD", "type": "crypto"},
    {"symbol": "DOGE/USD", "type": "crypto"},
]


class SymbolRegistry:
    """Immutable ordered list of (symbol, asset class) pairs.

    The position of an entry is its registry index: slot ``i`` of the live and
    close caches always refers to ``entries[i]``. Every component that needs
    symbol order receives the same registry instance instead of keeping its
    own list, so no two components can disagree on index assignment.
    """

    def __init__(self, entries: Iterable[RegistryEntry]) -> None:
        self._entries: tuple[RegistryEntry, ...] = tuple(entries)
        self._index: dict[str, int] = {}
        for i, entry in enumerate(self._entries):
            if entry.symbol in self._index:
                raise ValueError(f"Duplicate symbol in registry: {entry.symbol}")
            self._index[entry.symbol] = i

    @classmethod
    def from_config(cls, items: Iterable[dict]) -> SymbolRegistry:
        return cls(RegistryEntry.from_dict(item) for item in items)

    @property
    def entries(self) -> tuple[RegistryEntry, ...]:
        return self._entries

    def symbols(self, asset_class: AssetClass) -> list[str]:
        """Symbols of one asset class, in registry order."""
        return [e.symbol for e in self._entries if e.asset_class is asset_class]

    def partition(self) -> tuple[list[str], list[str]]:
        """Return (stock_symbols, crypto_symbols), each in registry order."""
        return self.symbols(AssetClass.STOCK), self.symbols(AssetClass.CRYPTO)

    def index_of(self, symbol: str) -> int | None:
        """Registry index of a symbol, or None if it is not in the universe."""
        return self._index.get(symbol)

    def interleave(self, by_class: Mapping[AssetClass, Sequence[T]]) -> list[T]:
        """Merge per-class result sequences back into registry order.

        Each class has its own cursor, advanced only when the entry at the
        current registry position belongs to that class. ``by_class[c]`` must
        hold exactly one value per symbol of class ``c``.
        """
        for asset_class in AssetClass:
            expected = len(self.symbols(asset_class))
            got = len(by_class.get(asset_class, ()))
            if got != expected:
                raise ValueError(
                    f"Expected {expected} {asset_class.value} values, got {got}"
                )

        cursors = {asset_class: 0 for asset_class in AssetClass}
        merged: list[T] = []
        for entry in self._entries:
            cursor = cursors[entry.asset_class]
            merged.append(by_class[entry.asset_class][cursor])
            cursors[entry.asset_class] = cursor + 1
        return merged

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self._entries)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._index
