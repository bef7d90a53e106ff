"""Market data subsystem for the Bitfinex connector.

Public API:
    Ticker, Trade, Candle    - Immutable market event dataclasses
    Subscription, Channel    - Streaming subscription tuple and channel names
    ConnectionState          - Lifecycle states of the streaming socket
    ConnectionManager        - Owns the websocket, receive loop and reconnection
    SubscriptionRegistry     - Deduplicated subscriptions, replayed on reconnect
    EventBus, Dispatcher     - Classified, attributed event delivery to handlers
    TickerCache              - Thread-safe 30s TTL cache of the latest tickers
    MarketFeed               - The above wired together
    HistoricalDataSource     - Abstract interface for REST snapshots
    BitfinexRestClient       - Bitfinex implementation of HistoricalDataSource
    create_market_feed       - Factory that reads configuration from env vars
    create_market_router     - FastAPI router factory for the HTTP endpoints
"""

from .cache import TickerCache
from .connection import ConnectionManager
from .dispatch import Dispatcher, EventBus, in_background
from .exceptions import (
    DecodeError,
    HandlerError,
    NotConnectedError,
    StreamConnectionError,
    StreamError,
)
from .factory import create_market_feed, create_rest_client
from .feed import MarketFeed
from .interface import HistoricalDataSource
from .models import Candle, Channel, ConnectionState, Subscription, Ticker, Trade
from .rest_client import BitfinexRestClient
from .routes import create_market_router
from .subscriptions import SubscriptionRegistry

__all__ = [
    "Ticker",
    "Trade",
    "Candle",
    "Subscription",
    "Channel",
    "ConnectionState",
    "ConnectionManager",
    "SubscriptionRegistry",
    "EventBus",
    "Dispatcher",
    "in_background",
    "TickerCache",
    "MarketFeed",
    "HistoricalDataSource",
    "BitfinexRestClient",
    "create_market_feed",
    "create_rest_client",
    "create_market_router",
    "StreamError",
    "StreamConnectionError",
    "NotConnectedError",
    "DecodeError",
    "HandlerError",
]
