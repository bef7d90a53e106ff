"""Streaming market feed: the wired-up connection, registry, dispatcher and cache."""

from __future__ import annotations

import logging

from .cache import TickerCache
from .connection import ConnectionManager
from .dispatch import Dispatcher, EventBus
from .models import Channel, ConnectionState, Subscription, Ticker
from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)


class MarketFeed:
    """Single entry point to the realtime Bitfinex feed.

    One instance per process; it owns the only ConnectionManager. The cache
    is registered as the first ticker handler, so every attributed ticker
    update lands in it before other handlers see it.

        feed = MarketFeed(ConnectionManager(), TickerCache())
        await feed.connect()
        await feed.subscribe_ticker("BTCUSD")
        feed.get_ticker("BTCUSD")     # None until the first update arrives
        await feed.close()
    """

    def __init__(
        self,
        connection: ConnectionManager,
        cache: TickerCache,
        bus: EventBus | None = None,
    ) -> None:
        self.connection = connection
        self.cache = cache
        self.bus = bus or EventBus()
        self.registry = SubscriptionRegistry(connection)
        self.dispatcher = Dispatcher(self.registry, self.bus)
        connection.set_message_callback(self.dispatcher.handle_message)
        self.bus.on_ticker(cache.handle_ticker)

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    async def connect(self) -> None:
        await self.connection.connect()

    async def subscribe_ticker(self, symbol: str) -> Subscription:
        return await self.registry.subscribe(Channel.TICKER, symbol)

    async def subscribe_trades(self, symbol: str) -> Subscription:
        return await self.registry.subscribe(Channel.TRADES, symbol)

    async def subscribe_candles(self, symbol: str, timeframe: str) -> Subscription:
        return await self.registry.subscribe(Channel.CANDLES, symbol, timeframe)

    async def unsubscribe(
        self, channel: Channel | str, symbol: str, timeframe: str | None = None
    ) -> bool:
        return await self.registry.unsubscribe(channel, symbol, timeframe)

    def subscriptions(self) -> list[Subscription]:
        return self.registry.subscriptions()

    def get_ticker(self, symbol: str) -> Ticker | None:
        """Most recent streamed ticker, or None if nothing arrived within the TTL."""
        return self.cache.get(symbol)

    async def close(self) -> None:
        await self.connection.close()
        logger.info("Market feed stopped")
