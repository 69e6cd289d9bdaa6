"""Alpaca real-time trade stream client, one connection per asset class."""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from .cache import LivePriceCache
from .interface import MarketDataSource
from .models import AssetClass
from .registry import SymbolRegistry

logger = logging.getLogger(__name__)

STREAM_BASE_URL = "wss://stream.data.alpaca.markets"
CRYPTO_STREAM_PATH = "/v1beta3/crypto/us"


def default_stream_url(asset_class: AssetClass, stock_feed: str = "iex") -> str:
    if asset_class is AssetClass.STOCK:
        return f"{STREAM_BASE_URL}/v2/{stock_feed}"
    return f"{STREAM_BASE_URL}{CRYPTO_STREAM_PATH}"


class StreamState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    SUBSCRIBED = "subscribed"


class StreamAuthError(Exception):
    """The upstream stream rejected our credentials."""


class AlpacaTradeStream(MarketDataSource):
    """MarketDataSource backed by an Alpaca trade WebSocket.

    State machine:
        DISCONNECTED -> CONNECTING -> AUTHENTICATING -> SUBSCRIBED
    and back to DISCONNECTED on error or close. After a disconnect the stream
    reconnects with exponential backoff (``initial_backoff`` doubling up to
    ``max_backoff``); the delay resets once a session reaches SUBSCRIBED.

    Each trade message is written to the LivePriceCache as it is read, so
    trades for the same symbol are applied in arrival order.
    """

    def __init__(
        self,
        asset_class: AssetClass,
        registry: SymbolRegistry,
        live_cache: LivePriceCache,
        key_id: str,
        secret: str,
        url: str | None = None,
        initial_backoff: float = 1.0,
        max_backoff: float = 60.0,
        open_timeout: float = 10.0,
    ) -> None:
        self.asset_class = asset_class
        self._symbols = registry.symbols(asset_class)
        self._cache = live_cache
        self._key_id = key_id
        self._secret = secret
        self._url = url or default_stream_url(asset_class)
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._open_timeout = open_timeout
        self._state = StreamState.DISCONNECTED
        self._task: asyncio.Task | None = None
        self._stopping = False

    @property
    def state(self) -> StreamState:
        return self._state

    async def start(self) -> None:
        self._stopping = False
        self._task = asyncio.create_task(
            self._run_forever(), name=f"{self.asset_class.value}-trade-stream"
        )
        logger.info(
            "%s trade stream started: %d symbols, %s",
            self.asset_class.value.capitalize(),
            len(self._symbols),
            self._url,
        )

    async def stop(self) -> None:
        self._stopping = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._set_state(StreamState.DISCONNECTED)
        logger.info("%s trade stream stopped", self.asset_class.value.capitalize())

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    # --- Internal ---

    async def _run_forever(self) -> None:
        backoff = self._initial_backoff
        while not self._stopping:
            try:
                await self._run_session()
            except StreamAuthError as e:
                logger.error("%s stream authentication failed: %s", self.asset_class.value, e)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning("%s stream connection error: %r", self.asset_class.value, e)
            except Exception:
                logger.exception("%s stream session failed", self.asset_class.value)

            was_subscribed = self._state is StreamState.SUBSCRIBED
            self._set_state(StreamState.DISCONNECTED)
            if self._stopping:
                break
            if was_subscribed:
                backoff = self._initial_backoff

            logger.info("%s stream reconnecting in %.1fs", self.asset_class.value, backoff)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, self._max_backoff)

    async def _run_session(self) -> None:
        """One connection lifetime: connect, authenticate, subscribe, consume."""
        self._set_state(StreamState.CONNECTING)
        async with websockets.connect(self._url, open_timeout=self._open_timeout) as ws:
            self._set_state(StreamState.AUTHENTICATING)
            await ws.send(json.dumps(self._auth_message()))
            async for frame in ws:
                for reply in self.handle_frame(frame):
                    await ws.send(json.dumps(reply))
        logger.info("%s stream closed by server", self.asset_class.value)

    def _auth_message(self) -> dict[str, Any]:
        return {"action": "auth", "key": self._key_id, "secret": self._secret}

    def _subscribe_message(self) -> dict[str, Any]:
        return {"action": "subscribe", "trades": list(self._symbols)}

    def handle_frame(self, frame: str | bytes) -> list[dict[str, Any]]:
        """Process one inbound frame; return the messages to send back.

        Raises StreamAuthError if the frame carries an error while
        authenticating.
        """
        try:
            messages = json.loads(frame)
        except (TypeError, ValueError):
            logger.warning("%s stream sent a malformed frame: %.200r", self.asset_class.value, frame)
            return []
        if isinstance(messages, dict):
            messages = [messages]
        if not isinstance(messages, list):
            logger.warning("%s stream sent an unexpected frame: %.200r", self.asset_class.value, frame)
            return []

        replies: list[dict[str, Any]] = []
        for msg in messages:
            if not isinstance(msg, dict):
                logger.debug("Skipping non-object stream message: %r", msg)
                continue
            reply = self._handle_message(msg)
            if reply is not None:
                replies.append(reply)
        return replies

    def _handle_message(self, msg: dict[str, Any]) -> dict[str, Any] | None:
        kind = msg.get("T")

        if self._state is StreamState.AUTHENTICATING:
            if kind == "success" and msg.get("msg") == "authenticated":
                logger.info("%s stream authenticated", self.asset_class.value)
                self._set_state(StreamState.SUBSCRIBED)
                return self._subscribe_message()
            if kind == "error":
                raise StreamAuthError(f"[{msg.get('code')}] {msg.get('msg')}")
            logger.info("%s stream message while authenticating: %s", self.asset_class.value, msg)
            return None

        if self._state is not StreamState.SUBSCRIBED:
            logger.debug("%s stream message in state %s ignored: %s", self.asset_class.value, self._state.value, msg)
            return None

        if kind == "t":
            symbol = msg.get("S")
            try:
                price = float(msg["p"])
            except (KeyError, TypeError, ValueError):
                price = None
            if not isinstance(symbol, str) or price is None:
                logger.warning("Skipping malformed trade message: %s", msg)
                return None
            self._cache.apply_trade(symbol, price)
        elif kind == "subscription":
            logger.info("%s stream subscribed: trades=%s", self.asset_class.value, msg.get("trades"))
        elif kind == "error":
            logger.error("%s stream error: [%s] %s", self.asset_class.value, msg.get("code"), msg.get("msg"))
        else:
            logger.debug("%s stream other message: %s", self.asset_class.value, msg)
        return None

    def _set_state(self, state: StreamState) -> None:
        if state is not self._state:
            logger.debug("%s stream %s -> %s", self.asset_class.value, self._state.value, state.value)
            self._state = state
