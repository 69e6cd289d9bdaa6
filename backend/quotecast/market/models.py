"""Data models for market data."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AssetClass(str, Enum):
    """Partition of the symbol universe with its own upstream endpoints and schedule."""

    STOCK = "stock"
    CRYPTO = "crypto"


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """One tradable instrument in the fixed universe."""

    symbol: str
    asset_class: AssetClass

    @classmethod
    def from_dict(cls, raw: dict) -> RegistryEntry:
        """Build from a config item like ``{"symbol": "BTC/USD", "type": "crypto"}``."""
        try:
            symbol = str(raw["symbol"]).strip()
            asset_class = AssetClass(str(raw["type"]).strip().lower())
        except KeyError as e:
            raise ValueError(f"Registry entry missing field {e}: {raw!r}") from e
        except ValueError as e:
            raise ValueError(f"Unknown asset type in registry entry: {raw!r}") from e
        if not symbol:
            raise ValueError(f"Registry entry has an empty symbol: {raw!r}")
        return cls(symbol=symbol, asset_class=asset_class)

    def to_dict(self) -> dict:
        return {"symbol": self.symbol, "type": self.asset_class.value}
