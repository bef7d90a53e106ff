"""Bitfinex public REST API client for historical snapshots."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .classifier import parse_candle, parse_ticker, parse_trade
from .exceptions import DecodeError
from .interface import HistoricalDataSource
from .models import Candle, Channel, Subscription, Ticker, Trade

logger = logging.getLogger(__name__)

BITFINEX_REST_URL = "https://api-pub.bitfinex.com/v2/"


class BitfinexRestClient(HistoricalDataSource):
    """HistoricalDataSource backed by ``api-pub.bitfinex.com/v2``.

    Responses are the same positional arrays the websocket sends, so rows are
    mapped with the classifier's parsers. Rows that do not parse are skipped.
    """

    def __init__(
        self,
        base_url: str = BITFINEX_REST_URL,
        timeout_seconds: float = 10.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_trades(self, symbol: str, limit: int = 50) -> list[Trade]:
        try:
            subscription = Subscription(Channel.TRADES, symbol)
            rows = await self._get(f"trades/{subscription.wire_symbol}/hist", {"limit": limit})
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch trades for %s: %s", symbol, e)
            return []
        return [
            trade.with_subscription(subscription)
            for trade in self._parse_rows(rows, parse_trade, symbol)
        ]

    async def get_candles(self, symbol: str, timeframe: str, limit: int = 50) -> list[Candle]:
        try:
            subscription = Subscription(Channel.CANDLES, symbol, timeframe)
            rows = await self._get(f"candles/{subscription.candle_key}/hist", {"limit": limit})
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch candles for %s (%s): %s", symbol, timeframe, e)
            return []
        return [
            candle.with_subscription(subscription)
            for candle in self._parse_rows(rows, parse_candle, symbol)
        ]

    async def get_ticker(self, symbol: str) -> Ticker | None:
        try:
            subscription = Subscription(Channel.TICKER, symbol)
            row = await self._get(f"ticker/{subscription.wire_symbol}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch ticker for %s: %s", symbol, e)
            return None

        if not isinstance(row, list) or len(row) < 10:
            logger.warning("Unexpected ticker response for %s: %r", symbol, row)
            return None
        try:
            return parse_ticker(row).with_subscription(subscription)
        except DecodeError as e:
            logger.warning("Unparseable ticker for %s: %s", symbol, e)
            return None

    # --- Internal ---

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _parse_rows(rows: Any, parser: Any, symbol: str) -> list:
        if not isinstance(rows, list):
            logger.warning("Unexpected response for %s: %r", symbol, rows)
            return []

        parsed = []
        for row in rows:
            if not isinstance(row, list):
                logger.warning("Skipping malformed row for %s: %r", symbol, row)
                continue
            try:
                parsed.append(parser(row))
            except (DecodeError, IndexError) as e:
                logger.warning("Skipping malformed row for %s: %s", symbol, e)
        return parsed
