"""HTTP endpoints for the streaming feed, the ticker cache and historical data."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from .cache import TickerCache
from .exceptions import NotConnectedError, StreamConnectionError
from .feed import MarketFeed
from .interface import HistoricalDataSource
from .models import Channel, Subscription, Ticker

logger = logging.getLogger(__name__)


def create_market_router(feed: MarketFeed, history: HistoricalDataSource) -> APIRouter:
    """Create the market router bound to one feed and one historical source.

    This factory pattern lets us inject the feed without globals.
    """
    router = APIRouter(prefix="/api")

    async def _connect() -> None:
        try:
            await feed.connect()
        except StreamConnectionError as e:
            logger.error("Connect failed: %s", e)
            raise HTTPException(status_code=502, detail=str(e)) from e

    async def _subscribe(channel: Channel, symbol: str, timeframe: str | None = None) -> dict:
        await _connect()
        try:
            subscription = await feed.registry.subscribe(channel, symbol, timeframe)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        except NotConnectedError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        return {"subscribed": subscription.to_dict()}

    async def _unsubscribe(channel: Channel, symbol: str, timeframe: str | None = None) -> dict:
        try:
            removed = await feed.unsubscribe(channel, symbol, timeframe)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        except NotConnectedError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        if not removed:
            raise HTTPException(status_code=404, detail="Not subscribed")
        return {"unsubscribed": Subscription(channel, symbol, timeframe).to_dict()}

    # --- Streaming feed ---

    @router.post("/stream/connect", tags=["streaming"])
    async def connect() -> dict:
        await _connect()
        return {"state": feed.state.value}

    @router.get("/stream/status", tags=["streaming"])
    async def status() -> dict:
        return {
            "state": feed.state.value,
            "subscriptions": len(feed.registry),
            "cached_tickers": len(feed.cache),
            "dropped_messages": feed.dispatcher.dropped,
        }

    @router.get("/stream/subscriptions", tags=["streaming"])
    async def subscriptions() -> list[dict]:
        return [s.to_dict() for s in feed.subscriptions()]

    @router.post("/stream/subscribe/ticker/{symbol}", tags=["streaming"])
    async def subscribe_ticker(symbol: str) -> dict:
        return await _subscribe(Channel.TICKER, symbol)

    @router.post("/stream/subscribe/trades/{symbol}", tags=["streaming"])
    async def subscribe_trades(symbol: str) -> dict:
        return await _subscribe(Channel.TRADES, symbol)

    @router.post("/stream/subscribe/candles/{symbol}/{timeframe}", tags=["streaming"])
    async def subscribe_candles(symbol: str, timeframe: str) -> dict:
        return await _subscribe(Channel.CANDLES, symbol, timeframe)

    @router.delete("/stream/subscribe/ticker/{symbol}", tags=["streaming"])
    async def unsubscribe_ticker(symbol: str) -> dict:
        return await _unsubscribe(Channel.TICKER, symbol)

    @router.delete("/stream/subscribe/trades/{symbol}", tags=["streaming"])
    async def unsubscribe_trades(symbol: str) -> dict:
        return await _unsubscribe(Channel.TRADES, symbol)

    @router.delete("/stream/subscribe/candles/{symbol}/{timeframe}", tags=["streaming"])
    async def unsubscribe_candles(symbol: str, timeframe: str) -> dict:
        return await _unsubscribe(Channel.CANDLES, symbol, timeframe)

    @router.get("/stream/ticker/{symbol}", tags=["streaming"])
    async def cached_ticker(symbol: str) -> dict:
        ticker = feed.get_ticker(symbol)
        if ticker is None:
            raise HTTPException(status_code=404, detail=f"No recent ticker for {symbol}")
        return ticker.to_dict()

    @router.get("/stream/tickers", tags=["streaming"])
    async def stream_tickers(request: Request) -> StreamingResponse:
        """Live tickers as server-sent events.

        Each frame carries every ticker still within its TTL:

            event: tickers
            data: {"BTCUSD": {"symbol": "BTCUSD", "last_price": 43000.0, ...}, ...}
        """
        return StreamingResponse(
            _ticker_events(feed.cache, request),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    # --- Historical snapshots ---

    @router.get("/market/trades/{symbol}", tags=["market"])
    async def trades(symbol: str, limit: int = 50) -> list[dict]:
        return [t.to_dict() for t in await history.get_trades(symbol, limit)]

    @router.get("/market/candles/{symbol}/{timeframe}", tags=["market"])
    async def candles(symbol: str, timeframe: str, limit: int = 50) -> list[dict]:
        return [c.to_dict() for c in await history.get_candles(symbol, timeframe, limit)]

    @router.get("/market/ticker/{symbol}", tags=["market"])
    async def ticker(symbol: str) -> dict:
        result = await history.get_ticker(symbol)
        if result is None:
            raise HTTPException(status_code=404, detail=f"No ticker for {symbol}")
        return result.to_dict()

    return router

def _ticker_frame(tickers: dict[str, Ticker]) -> str:
    payload = {symbol: ticker.to_dict() for symbol, ticker in tickers.items()}
    return f"event: tickers\ndata: {json.dumps(payload)}\n\n"


async def _ticker_events(
    cache: TickerCache,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Yield an SSE frame whenever the set of live tickers changes.

    The cache is sampled every ``interval`` seconds. A frame goes out when a
    ticker is written and also when one expires, so subscribers drop stale
    symbols. Nothing is sent before the first ticker arrives.
    """
    yield "retry: 1000\n\n"

    peer = request.client.host if request.client else "unknown"
    logger.info("Ticker stream opened for %s", peer)
    last_seen: tuple[int, frozenset[str]] | None = None

    try:
        while not await request.is_disconnected():
            live = cache.get_all()
            seen = (cache.version, frozenset(live))
            if seen != last_seen and (live or last_seen is not None):
                last_seen = seen
                yield _ticker_frame(live)
            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("Ticker stream cancelled for %s", peer)
        raise
    logger.info("Ticker stream closed for %s", peer)
