"""Market data subsystem for quotecast.

Public API:
    AssetClass          - stock / crypto partition of the universe
    RegistryEntry       - one (symbol, asset class) pair
    SymbolRegistry      - fixed ordered universe; defines every cache index
    LivePriceCache      - latest trade price per registry index
    ClosePriceCache     - previous-session close per registry index
    MarketDataSource    - push-style provider interface (streams, simulator)
    SnapshotSource      - pull-style batched snapshot interface
    UpstreamError       - REST snapshot failure
    MarketService       - cache initialization and close rebuilds
    create_snapshot_sources / create_market_data_sources - Alpaca or simulator
"""

from .cache import ClosePriceCache, LivePriceCache
from .factory import create_market_data_sources, create_snapshot_sources
from .fetcher import UpstreamError
from .interface import MarketDataSource, SnapshotSource
from .models import AssetClass, RegistryEntry
from .registry import SymbolRegistry
from .service import MarketService

__all__ = [
    "AssetClass",
    "RegistryEntry",
    "SymbolRegistry",
    "LivePriceCache",
    "ClosePriceCache",
    "MarketDataSource",
    "SnapshotSource",
    "UpstreamError",
    "MarketService",
    "create_snapshot_sources",
    "create_market_data_sources",
]
