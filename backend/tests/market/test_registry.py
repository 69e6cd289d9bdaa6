"""Tests for SymbolRegistry."""

import pytest

from quotecast.market.models import AssetClass, RegistryEntry
from quotecast.market.registry import DEFAULT_SYMBOLS, SymbolRegistry


class TestSymbolRegistry:
    """Unit tests for the SymbolRegistry."""

    def test_partition_preserves_order(self, registry):
        """Test that each class keeps its relative registry order."""
        stocks, cryptos = registry.partition()
        assert stocks == ["SPY", "AAPL"]
        assert cryptos == ["BTC/USD"]

    def test_index_of(self, registry):
        """Test registry index lookup."""
        assert registry.index_of("SPY") == 0
        assert registry.index_of("BTC/USD") == 1
        assert registry.index_of("AAPL") == 2

    def test_index_of_unknown(self, registry):
        """Test that unknown symbols are not found."""
        assert registry.index_of("DOGE/USD") is None
        assert "DOGE/USD" not in registry
        assert "SPY" in registry

    def test_len_and_iter(self, registry):
        """Test __len__ and iteration order."""
        assert len(registry) == 3
        assert [e.symbol for e in registry] == ["SPY", "BTC/USD", "AAPL"]

    def test_duplicate_symbol_rejected(self):
        """Test that a symbol can only appear once."""
        with pytest.raises(ValueError, match="Duplicate"):
            SymbolRegistry(
                [
                    RegistryEntry("SPY", AssetClass.STOCK),
                    RegistryEntry("SPY", AssetClass.STOCK),
                ]
            )

    def test_interleave(self, registry):
        """Test the positional merge of per-class results."""
        merged = registry.interleave(
            {AssetClass.STOCK: [100, 200], AssetClass.CRYPTO: [50000]}
        )
        assert merged == [100, 50000, 200]

    def test_interleave_keeps_none(self, registry):
        """Test that missing values stay in their slot."""
        merged = registry.interleave(
            {AssetClass.STOCK: [None, 200], AssetClass.CRYPTO: [None]}
        )
        assert merged == [None, None, 200]

    def test_interleave_length_mismatch(self, registry):
        """Test that a short class result is rejected rather than misaligned."""
        with pytest.raises(ValueError, match="Expected 2 stock values"):
            registry.interleave({AssetClass.STOCK: [100], AssetClass.CRYPTO: [50000]})

    def test_interleave_missing_class(self, registry):
        """Test that a missing class is rejected."""
        with pytest.raises(ValueError, match="crypto"):
            registry.interleave({AssetClass.STOCK: [100, 200]})

    def test_interleave_single_class_registry(self):
        """Test a registry with no crypto symbols."""
        reg = SymbolRegistry([RegistryEntry("SPY", AssetClass.STOCK)])
        assert reg.interleave({AssetClass.STOCK: [1.0], AssetClass.CRYPTO: []}) == [1.0]

    def test_from_config_defaults(self):
        """Test building the default universe."""
        reg = SymbolRegistry.from_config(DEFAULT_SYMBOLS)
        stocks, cryptos = reg.partition()
        assert len(reg) == 17
        assert cryptos == ["BTC/USD", "ETH/USD", "SOL/USD", "DOGE/USD"]
        assert stocks[:5] == ["SPY", "QQQ", "IWM", "AAPL", "MSFT"]
        assert reg.index_of("BTC/USD") == 5
