"""Alpaca market data REST client for batched point-in-time snapshots."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import httpx

from .interface import SnapshotSource
from .models import AssetClass

logger = logging.getLogger(__name__)

ALPACA_DATA_URL = "https://data.alpaca.markets"

# Per asset class: (latest trades path, historical bars path)
_ENDPOINTS: dict[AssetClass, tuple[str, str]] = {
    AssetClass.STOCK: ("/v2/stocks/trades/latest", "/v2/stocks/bars"),
    AssetClass.CRYPTO: ("/v1beta3/crypto/us/latest/trades", "/v1beta3/crypto/us/bars"),
}


class UpstreamError(Exception):
    """The upstream REST API failed or returned something that is not JSON."""

    def __init__(
        self,
        message: str,
        asset_class: AssetClass | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.asset_class = asset_class
        self.status_code = status_code


def format_timestamp(value: datetime) -> str:
    """RFC 3339 UTC timestamp as accepted by the bars endpoints."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class AlpacaSnapshotFetcher(SnapshotSource):
    """SnapshotSource backed by the Alpaca market data REST API.

    One instance per asset class. Every call sends the whole symbol batch in
    a single request (comma-joined ``symbols`` parameter) instead of one
    request per symbol. Failures raise UpstreamError; retry policy is left
    to the caller.
    """

    def __init__(
        self,
        asset_class: AssetClass,
        client: httpx.AsyncClient,
        key_id: str = "",
        secret: str = "",
        stock_feed: str = "iex",
        base_url: str = ALPACA_DATA_URL,
    ) -> None:
        self.asset_class = asset_class
        self._client = client
        self._key_id = key_id
        self._secret = secret
        self._feed = stock_feed
        self._base_url = base_url.rstrip("/")
        self._latest_path, self._bars_path = _ENDPOINTS[asset_class]

    async def latest_trade(self, symbols: Sequence[str]) -> list[float | None]:
        if not symbols:
            return []
        params: dict[str, Any] = {"symbols": ",".join(symbols)}
        if self.asset_class is AssetClass.STOCK:
            params["feed"] = self._feed

        data = await self._get_json(self._latest_path, params)
        trades = data.get("trades") or {}
        return [_field(trades.get(symbol), "p") for symbol in symbols]

    async def close_at(
        self,
        symbols: Sequence[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[float | None]:
        if not symbols:
            return []
        # limit applies across the whole response, not per symbol; the window
        # holds at most one 1Min bar per symbol.
        params: dict[str, Any] = {
            "symbols": ",".join(symbols),
            "timeframe": "1Min",
            "start": format_timestamp(window_start),
            "end": format_timestamp(window_end),
            "limit": len(symbols),
            "sort": "asc",
        }
        if self.asset_class is AssetClass.STOCK:
            params["adjustment"] = "raw"
            params["feed"] = self._feed

        bars: dict[str, list] = {}
        while True:
            data = await self._get_json(self._bars_path, params)
            for symbol, symbol_bars in (data.get("bars") or {}).items():
                bars.setdefault(symbol, []).extend(symbol_bars or [])
            page_token = data.get("next_page_token")
            if not page_token:
                break
            params["page_token"] = page_token

        closes = []
        for symbol in symbols:
            symbol_bars = bars.get(symbol) or []
            closes.append(_field(symbol_bars[0], "c") if symbol_bars else None)
        logger.debug(
            "Fetched %s closes in [%s, %s): %d/%d found",
            self.asset_class.value,
            params["start"],
            params["end"],
            sum(c is not None for c in closes),
            len(symbols),
        )
        return closes

    # --- Internal ---

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self._key_id and self._secret:
            headers["APCA-API-KEY-ID"] = self._key_id
            headers["APCA-API-SECRET-KEY"] = self._secret
        return headers

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.get(url, params=params, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"{self.asset_class.value} request to {path} failed with "
                f"HTTP {e.response.status_code}",
                asset_class=self.asset_class,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"{self.asset_class.value} request to {path} failed: {e!r}",
                asset_class=self.asset_class,
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{self.asset_class.value} response from {path} is not JSON",
                asset_class=self.asset_class,
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise UpstreamError(
                f"{self.asset_class.value} response from {path} is not a JSON object",
                asset_class=self.asset_class,
                status_code=response.status_code,
            )
        return data


def _field(obj: Any, key: str) -> float | None:
    """Numeric field of a trade/bar object, or None when absent."""
    if not isinstance(obj, dict):
        return None
    value = obj.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
