"""Seed prices and per-class parameters for simulator mode."""

from .models import AssetClass

# Realistic starting prices for the default universe
SEED_PRICES: dict[str, float] = {
    "SPY": 560.00,
    "QQQ": 480.00,
    "IWM": 215.00,
    "AAPL": 225.00,
    "MSFT": 430.00,
    "NVDA": 130.00,
    "META": 580.00,
    "AMZN": 190.00,
    "TSLA": 250.00,
    "GOOGL": 165.00,
    "DIA": 420.00,
    "VTI": 280.00,
    "GLD": 245.00,
    "BTC/USD": 65000.00,
    "ETH/USD": 2600.00,
    "SOL/USD": 150.00,
    "DOGE/USD": 0.12,
}

# GBM parameters per asset class
# sigma: annualized volatility, mu: annualized drift
CLASS_PARAMS: dict[AssetClass, dict[str, float]] = {
    AssetClass.STOCK: {"sigma": 0.25, "mu": 0.05},
    AssetClass.CRYPTO: {"sigma": 0.65, "mu": 0.05},
}

# Unknown symbols start somewhere in this range
DEFAULT_PRICE_RANGE = (50.0, 300.0)

# Simulated previous close sits within this fraction of the seed
CLOSE_DRIFT = 0.02
