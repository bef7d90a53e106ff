"""Data models for market data."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class ConnectionState(Enum):
    """Lifecycle of the streaming socket."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    RECONNECTING = "reconnecting"


class Channel(str, Enum):
    """Public streaming channels."""

    TICKER = "ticker"
    TRADES = "trades"
    CANDLES = "candles"


def normalize_symbol(symbol: str) -> str:
    """'btcusd ' -> 'BTCUSD'. Strips a leading trading-pair 't' prefix if present."""
    symbol = symbol.strip()
    if len(symbol) > 1 and symbol[0] == "t" and symbol[1:].isupper():
        symbol = symbol[1:]
    return symbol.upper()


@dataclass(frozen=True, slots=True)
class Subscription:
    """One (channel, symbol, timeframe) tuple. Timeframe is only used for candles."""

    channel: Channel
    symbol: str
    timeframe: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "channel", Channel(self.channel))
        object.__setattr__(self, "symbol", normalize_symbol(self.symbol))
        if not self.symbol:
            raise ValueError("symbol must not be empty")
        if self.channel is Channel.CANDLES:
            if not self.timeframe or not self.timeframe.strip():
                raise ValueError("candles subscriptions require a timeframe")
            object.__setattr__(self, "timeframe", self.timeframe.strip())
        elif self.timeframe is not None:
            raise ValueError(f"{self.channel.value} subscriptions do not take a timeframe")

    @property
    def wire_symbol(self) -> str:
        return f"t{self.symbol}"

    @property
    def candle_key(self) -> str | None:
        if self.channel is not Channel.CANDLES:
            return None
        return f"trade:{self.timeframe}:{self.wire_symbol}"

    def subscribe_frame(self) -> dict[str, str]:
        """Wire frame requesting this subscription."""
        frame = {"event": "subscribe", "channel": self.channel.value}
        if self.channel is Channel.CANDLES:
            frame["key"] = self.candle_key
        else:
            frame["symbol"] = self.wire_symbol
        return frame

    @staticmethod
    def unsubscribe_frame(chan_id: int) -> dict[str, Any]:
        return {"event": "unsubscribe", "chanId": chan_id}

    @classmethod
    def from_ack(cls, event: dict[str, Any]) -> Subscription:
        """Rebuild the subscription from a 'subscribed' acknowledgement.

        Ticker/trades acks echo ``symbol`` ("tBTCUSD"); candle acks echo
        ``key`` ("trade:1m:tBTCUSD"). Raises ValueError if neither is usable.
        """
        channel = Channel(event.get("channel"))
        if channel is Channel.CANDLES:
            key = event.get("key")
            if not isinstance(key, str):
                raise ValueError(f"candles ack without key: {event!r}")
            parts = key.split(":", 2)
            if len(parts) != 3 or parts[0] != "trade":
                raise ValueError(f"unsupported candle key {key!r}")
            return cls(channel, parts[2], parts[1])

        symbol = event.get("symbol") or event.get("pair")
        if not isinstance(symbol, str):
            raise ValueError(f"{channel.value} ack without symbol: {event!r}")
        return cls(channel, symbol)

    def to_dict(self) -> dict:
        return {"channel": self.channel.value, "symbol": self.symbol, "timeframe": self.timeframe}


@dataclass(frozen=True, slots=True)
class Ticker:
    """Daily ticker snapshot for a currency pair."""

    last_price: float
    daily_change: float
    daily_change_percent: float
    volume: float
    high: float
    low: float
    symbol: str | None = None  # Not echoed on the wire; set by the dispatcher

    def with_subscription(self, subscription: Subscription) -> Ticker:
        return dataclasses.replace(self, symbol=subscription.symbol)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "last_price": self.last_price,
            "daily_change": self.daily_change,
            "daily_change_percent": self.daily_change_percent,
            "volume": self.volume,
            "high": self.high,
            "low": self.low,
        }


@dataclass(frozen=True, slots=True)
class Trade:
    """A single executed trade. Negative amount means a sell."""

    id: int
    timestamp: datetime
    price: float
    amount: float
    symbol: str | None = None

    @property
    def side(self) -> str:
        """'buy' or 'sell'."""
        return "sell" if self.amount < 0 else "buy"

    def with_subscription(self, subscription: Subscription) -> Trade:
        return dataclasses.replace(self, symbol=subscription.symbol)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "symbol": self.symbol,
            "price": self.price,
            "amount": self.amount,
            "side": self.side,
        }


@dataclass(frozen=True, slots=True)
class Candle:
    """OHLCV bar. Symbol and timeframe come from the originating subscription."""

    timestamp: datetime
    open: float
    close: float
    high: float
    low: float
    volume: float
    symbol: str | None = None
    timeframe: str | None = None

    def with_subscription(self, subscription: Subscription) -> Candle:
        return dataclasses.replace(
            self, symbol=subscription.symbol, timeframe=subscription.timeframe
        )

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "open": self.open,
            "close": self.close,
            "high": self.high,
            "low": self.low,
            "volume": self.volume,
        }


@dataclass(frozen=True, slots=True)
class Unrecognized:
    """An element the classifier could not map to a market event."""

    raw: Any
    reason: str


MarketEvent = Ticker | Trade | Candle


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Cached ticker plus its expiry on the cache's clock (seconds)."""

    value: Ticker
    expiry: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expiry
