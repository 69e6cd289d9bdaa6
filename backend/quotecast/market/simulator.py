"""GBM-based market simulator used when no upstream credentials are configured."""

from __future__ import annotations

import asyncio
import logging
import random
import zlib
from collections.abc import Sequence
from datetime import datetime

import numpy as np

from .cache import LivePriceCache
from .interface import MarketDataSource, SnapshotSource
from .models import AssetClass
from .registry import SymbolRegistry
from .seed_prices import CLASS_PARAMS, CLOSE_DRIFT, DEFAULT_PRICE_RANGE, SEED_PRICES

logger = logging.getLogger(__name__)


def seed_price(symbol: str) -> float:
    """Starting price for a symbol; stable per symbol for unknown ones."""
    if symbol in SEED_PRICES:
        return SEED_PRICES[symbol]
    low, high = DEFAULT_PRICE_RANGE
    return round(random.Random(zlib.crc32(symbol.encode())).uniform(low, high), 2)


class GBMSimulator:
    """Geometric Brownian Motion over every registry symbol.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Stocks and crypto carry different volatility. The step is vectorized
    over the whole registry; ``dt`` is the tick length as a fraction of a
    calendar year since crypto trades around the clock.
    """

    SECONDS_PER_YEAR = 365 * 24 * 3600
    DEFAULT_DT = 1.0 / SECONDS_PER_YEAR

    def __init__(
        self,
        registry: SymbolRegistry,
        start_prices: Sequence[float | None] | None = None,
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._symbols = [entry.symbol for entry in registry]
        self._dt = dt
        self._event_prob = event_probability
        self._rng = rng or np.random.default_rng()

        starts = list(start_prices) if start_prices is not None else [None] * len(registry)
        self._prices = np.array(
            [p if p else seed_price(s) for s, p in zip(self._symbols, starts)],
            dtype=float,
        )
        self._sigma = np.array([CLASS_PARAMS[e.asset_class]["sigma"] for e in registry])
        self._mu = np.array([CLASS_PARAMS[e.asset_class]["mu"] for e in registry])

    def step(self) -> dict[str, float]:
        """Advance all symbols by one time step. Returns {symbol: new_price}."""
        n = len(self._symbols)
        if n == 0:
            return {}

        z = self._rng.standard_normal(n)
        drift = (self._mu - 0.5 * self._sigma**2) * self._dt
        diffusion = self._sigma * np.sqrt(self._dt) * z
        self._prices *= np.exp(drift + diffusion)

        # Rare shocks: 2-5% jump in either direction
        events = self._rng.random(n) < self._event_prob
        if events.any():
            magnitude = self._rng.uniform(0.02, 0.05, n)
            sign = self._rng.choice([-1.0, 1.0], n)
            self._prices = np.where(events, self._prices * (1 + magnitude * sign), self._prices)
            for i in np.flatnonzero(events):
                logger.debug("Random event on %s: %+.1f%%", self._symbols[i], magnitude[i] * sign[i] * 100)

        return {s: float(round(p, 6 if p < 1 else 2)) for s, p in zip(self._symbols, self._prices)}

    def get_price(self, symbol: str) -> float | None:
        try:
            return float(self._prices[self._symbols.index(symbol)])
        except ValueError:
            return None


class SimulatedSnapshotSource(SnapshotSource):
    """Offline SnapshotSource answering from the seed table."""

    def __init__(self, asset_class: AssetClass) -> None:
        self.asset_class = asset_class

    async def latest_trade(self, symbols: Sequence[str]) -> list[float | None]:
        return [seed_price(s) for s in symbols]

    async def close_at(
        self,
        symbols: Sequence[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[float | None]:
        # Deterministic per (symbol, window) so repeated rebuilds agree
        closes = []
        for symbol in symbols:
            rng = random.Random(f"{symbol}|{window_start.isoformat()}")
            closes.append(round(seed_price(symbol) * (1 + rng.uniform(-CLOSE_DRIFT, CLOSE_DRIFT)), 2))
        return closes


class SimulatorDataSource(MarketDataSource):
    """MarketDataSource backed by the GBM simulator.

    Runs a background asyncio task that calls GBMSimulator.step() every
    `update_interval` seconds and writes each price through
    LivePriceCache.apply_trade, like a trade stream would.
    """

    def __init__(
        self,
        registry: SymbolRegistry,
        live_cache: LivePriceCache,
        update_interval: float = 1.0,
        event_probability: float = 0.001,
    ) -> None:
        self._registry = registry
        self._cache = live_cache
        self._interval = update_interval
        self._event_prob = event_probability
        self._sim: GBMSimulator | None = None
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        # Continue from whatever the snapshot initialization put in the cache
        self._sim = GBMSimulator(
            self._registry,
            start_prices=self._cache.snapshot(),
            event_probability=self._event_prob,
        )
        self._task = asyncio.create_task(self._run_loop(), name="simulator-loop")
        logger.info("Simulator started with %d symbols", len(self._registry))

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Simulator stopped")

    def get_symbols(self) -> list[str]:
        return [entry.symbol for entry in self._registry]

    async def _run_loop(self) -> None:
        """Core loop: step the simulation, write to cache, sleep."""
        while True:
            try:
                if self._sim:
                    for symbol, price in self._sim.step().items():
                        self._cache.apply_trade(symbol, price)
            except Exception:
                logger.exception("Simulator step failed")
            await asyncio.sleep(self._interval)
