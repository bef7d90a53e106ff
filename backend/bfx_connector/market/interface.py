"""Abstract interface for historical market data."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Candle, Ticker, Trade


class HistoricalDataSource(ABC):
    """Contract for request/response snapshot providers.

    Each call is a single round trip with its own error handling: failures
    are logged and reported as an empty list or None, never raised. The
    streaming feed does not depend on this; it only shares the models.

    Lifecycle:
        source = create_rest_client()
        trades = await source.get_trades("BTCUSD", limit=100)
        candles = await source.get_candles("BTCUSD", "1m")
        ticker = await source.get_ticker("BTCUSD")
        await source.aclose()
    """

    @abstractmethod
    async def get_trades(self, symbol: str, limit: int = 50) -> list[Trade]:
        """Most recent trades for ``symbol``, newest first. Empty on failure."""

    @abstractmethod
    async def get_candles(self, symbol: str, timeframe: str, limit: int = 50) -> list[Candle]:
        """Most recent candles for ``symbol`` at ``timeframe`` (e.g. 1m, 1h). Empty on failure."""

    @abstractmethod
    async def get_ticker(self, symbol: str) -> Ticker | None:
        """Current ticker for ``symbol``, or None on failure."""

    async def aclose(self) -> None:
        """Release transport resources. Safe to call multiple times."""
