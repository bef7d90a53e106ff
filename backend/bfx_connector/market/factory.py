"""Factories for the streaming feed and the historical REST client."""

from __future__ import annotations

import logging
import os

from .cache import DEFAULT_TTL_SECONDS, TickerCache
from .connection import BITFINEX_WS_URL, DEFAULT_RECONNECT_DELAY, ConnectionManager, Connector
from .feed import MarketFeed
from .rest_client import BITFINEX_REST_URL, BitfinexRestClient

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r, using %s", name, raw, default)
        return default
    return value


def create_market_feed(
    cache: TickerCache | None = None,
    connector: Connector | None = None,
) -> MarketFeed:
    """Create the streaming feed from environment variables.

    - BITFINEX_WS_URL           websocket endpoint (default: public v2 feed)
    - BITFINEX_RECONNECT_DELAY  seconds between reconnect attempts (default 5)
    - BITFINEX_CACHE_TTL        ticker cache time-to-live in seconds (default 30)

    Returns an unconnected feed. Caller must await feed.connect().
    """
    url = os.environ.get("BITFINEX_WS_URL", "").strip() or BITFINEX_WS_URL
    delay = _env_float("BITFINEX_RECONNECT_DELAY", DEFAULT_RECONNECT_DELAY)
    if cache is None:
        cache = TickerCache(ttl=_env_float("BITFINEX_CACHE_TTL", DEFAULT_TTL_SECONDS))

    connection = ConnectionManager(url=url, reconnect_delay=delay, connector=connector)
    logger.info("Market feed: %s (reconnect every %.1fs, cache TTL %.0fs)", url, delay, cache.ttl)
    return MarketFeed(connection=connection, cache=cache)


def create_rest_client() -> BitfinexRestClient:
    """Create the historical REST client. BITFINEX_REST_URL overrides the endpoint."""
    base_url = os.environ.get("BITFINEX_REST_URL", "").strip() or BITFINEX_REST_URL
    logger.info("Historical data source: %s", base_url)
    return BitfinexRestClient(base_url=base_url)
