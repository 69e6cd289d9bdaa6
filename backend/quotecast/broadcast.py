"""WebSocket fan-out of price and news snapshots to subscribers."""

from __future__ import annotations

import asyncio
import hmac
import logging
from collections.abc import Iterable
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from fastapi.websockets import WebSocketState

from .market.service import MarketService
from .news import NewsFetcher

logger = logging.getLogger(__name__)

PRICE_MESSAGE_TYPE = "p"
NEWS_MESSAGE_TYPE = "n"

# Seconds a single subscriber send may take before that subscriber is dropped
SEND_TIMEOUT = 5.0


class Broadcaster:
    """Holds the accepted subscriber sockets and pushes snapshots to all of them.

    Delivery is best-effort: one send per open socket per tick, no
    acknowledgement, no retry, no backlog. Sockets that are no longer open
    are skipped; a send that fails or exceeds ``send_timeout`` drops that
    subscriber.
    """

    def __init__(self, market: MarketService, news: NewsFetcher, send_timeout: float = SEND_TIMEOUT) -> None:
        self._market = market
        self._news = news
        self._send_timeout = send_timeout
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        async with self._lock:
            self._clients.add(ws)
        logger.info("WebSocket client connected (%d total)", len(self._clients))

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(ws)
        logger.info("WebSocket client disconnected (%d total)", len(self._clients))

    def price_message(self) -> dict[str, Any]:
        snapshot = self._market.snapshot()
        return {"type": PRICE_MESSAGE_TYPE, "prices": snapshot["prices"], "closes": snapshot["closes"]}

    def news_message(self) -> dict[str, Any]:
        return {"type": NEWS_MESSAGE_TYPE, "news": self._news.cache.snapshot()}

    async def broadcast_prices(self) -> int:
        return await self.broadcast(self.price_message())

    async def refresh_and_broadcast_news(self) -> int:
        await self._news.refresh()
        return await self.broadcast(self.news_message())

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """Send payload to every open subscriber concurrently. Returns how many were sent.

        Each send is bounded by ``send_timeout``; a subscriber that times out
        or errors is dropped, so one stalled socket never holds back the rest.
        """
        async with self._lock:
            clients = [ws for ws in self._clients if _is_open(ws)]

        results = await asyncio.gather(
            *(asyncio.wait_for(ws.send_json(payload), self._send_timeout) for ws in clients),
            return_exceptions=True,
        )
        sent = 0
        for ws, result in zip(clients, results):
            if isinstance(result, BaseException):
                logger.debug("Dropping subscriber after failed send: %r", result)
                await self.disconnect(ws)
            else:
                sent += 1
        logger.debug("Broadcast %r to %d/%d subscribers", payload.get("type"), sent, len(clients))
        return sent


def _is_open(ws: WebSocket) -> bool:
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


def token_matches(supplied: str | None, expected: str) -> bool:
    """Constant-time token check. An unset server token matches nothing."""
    if not expected or not supplied:
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()


def create_ws_router(
    broadcaster: Broadcaster,
    token: str,
    allowed_origins: Iterable[str],
) -> APIRouter:
    """Create the subscriber WebSocket router.

    This factory pattern lets us inject the Broadcaster without globals.
    """
    router = APIRouter(tags=["streaming"])
    origins = frozenset(allowed_origins)

    @router.websocket("/ws")
    async def subscribe(websocket: WebSocket) -> None:
        """Subscriber push channel.

        The upgrade must carry the shared token, either as
        ``Authorization: Bearer <token>`` or as ``?token=<token>`` (browsers
        cannot set headers on a WebSocket). The token is checked before the
        Origin header; either failure refuses the upgrade before any frame is
        exchanged. Accepted clients then receive:

            {"type": "p", "prices": [...], "closes": [...]}
            {"type": "n", "news": [...]}
        """
        supplied = bearer_token(websocket.headers.get("authorization")) or websocket.query_params.get("token")
        if not token_matches(supplied, token):
            logger.warning("WebSocket upgrade rejected: invalid or missing token")
            await _deny(websocket, status.HTTP_401_UNAUTHORIZED, "Unauthorized")
            return

        origin = websocket.headers.get("origin")
        if origin and origin not in origins:
            logger.warning("WebSocket upgrade rejected: origin %s not allowed", origin)
            await _deny(websocket, status.HTTP_403_FORBIDDEN, "Forbidden")
            return

        await broadcaster.connect(websocket)
        try:
            while True:
                # Subscribers have nothing to say; reading detects the close.
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except WebSocketDisconnect:
            pass
        finally:
            await broadcaster.disconnect(websocket)

    return router


async def _deny(websocket: WebSocket, status_code: int, error: str) -> None:
    """Refuse the upgrade with an HTTP response when the server supports it.

    Without the ``websocket.http.response`` extension the socket is closed
    before it is accepted, and the server answers the handshake with its own
    HTTP 403 whatever ``status_code`` was; 401 and 403 are then
    indistinguishable to the client.
    """
    if "websocket.http.response" in (websocket.scope.get("extensions") or {}):
        await websocket.send_denial_response(JSONResponse({"error": error}, status_code=status_code))
    else:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=error)
