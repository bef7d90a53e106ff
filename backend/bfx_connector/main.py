"""FastAPI application wiring for the Bitfinex connector."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .market import (
    HistoricalDataSource,
    MarketFeed,
    create_market_feed,
    create_market_router,
    create_rest_client,
)

logger = logging.getLogger(__name__)


def create_app(
    feed: MarketFeed | None = None,
    history: HistoricalDataSource | None = None,
) -> FastAPI:
    """Build the app around exactly one MarketFeed.

    The feed is closed (and the REST client released) on shutdown. Nothing
    connects at startup; the first subscribe or /api/stream/connect does.
    """
    feed = feed or create_market_feed()
    history = history or create_rest_client()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await feed.close()
        await history.aclose()

    app = FastAPI(
        title="Bitfinex API Connector",
        description="Realtime and historical market data from Bitfinex",
        lifespan=lifespan,
    )
    app.state.feed = feed
    app.state.history = history
    app.include_router(create_market_router(feed, history))
    return app


def configure_logging() -> None:
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()
app = create_app()
