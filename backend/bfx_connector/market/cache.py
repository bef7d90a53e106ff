"""Thread-safe in-memory ticker cache with a fixed time-to-live."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from threading import Lock

from .models import CacheEntry, Ticker, normalize_symbol

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


class TickerCache:
    """Most recent streamed ticker per symbol, valid for ``ttl`` seconds.

    Writers: the dispatcher's ticker handler (one entry per symbol, last write wins).
    Readers: HTTP routes and any pull-style consumer.

    Expiry is checked lazily on read; expired entries are treated as absent
    and stay in place until overwritten.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every put

    @property
    def ttl(self) -> float:
        return self._ttl

    def put(self, symbol: str, ticker: Ticker) -> CacheEntry:
        """Store or overwrite the ticker for ``symbol`` and reset its expiry."""
        symbol = normalize_symbol(symbol)
        with self._lock:
            entry = CacheEntry(value=ticker, expiry=self._clock() + self._ttl)
            self._entries[symbol] = entry
            self._version += 1
        logger.debug("Cache updated for %s: %s", symbol, ticker.last_price)
        return entry

    def get(self, symbol: str) -> Ticker | None:
        """Latest unexpired ticker for ``symbol``, or None."""
        symbol = normalize_symbol(symbol)
        with self._lock:
            entry = self._entries.get(symbol)
            if entry is None or entry.is_expired(self._clock()):
                return None
            return entry.value

    def get_all(self) -> dict[str, Ticker]:
        """Snapshot of every unexpired ticker."""
        with self._lock:
            now = self._clock()
            return {
                symbol: entry.value
                for symbol, entry in self._entries.items()
                if not entry.is_expired(now)
            }

    def remove(self, symbol: str) -> None:
        with self._lock:
            self._entries.pop(normalize_symbol(symbol), None)

    async def handle_ticker(self, ticker: Ticker) -> None:
        """Event bus handler: cache an attributed ticker update."""
        if not ticker.symbol:
            logger.warning("Ignoring ticker without symbol: %s", ticker)
            return
        self.put(ticker.symbol, ticker)

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version

    def __len__(self) -> int:
        return len(self.get_all())

    def __contains__(self, symbol: str) -> bool:
        return self.get(symbol) is not None
