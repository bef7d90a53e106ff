"""Tests for TickerCache."""

import pytest

from bfx_connector.market.cache import TickerCache
from bfx_connector.market.models import Ticker


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _ticker(price: float, symbol: str | None = "BTCUSD") -> Ticker:
    return Ticker(
        last_price=price,
        daily_change=0.0,
        daily_change_percent=0.0,
        volume=1.0,
        high=price,
        low=price,
        symbol=symbol,
    )


class TestTickerCache:
    """Unit tests for the TickerCache."""

    def test_put_and_get(self):
        """Test that get returns what put stored."""
        cache = TickerCache()
        ticker = _ticker(43000.0)
        cache.put("BTCUSD", ticker)
        assert cache.get("BTCUSD") == ticker

    def test_get_unknown_is_none(self):
        """Test that an unknown symbol is absent, not an error."""
        cache = TickerCache()
        assert cache.get("NOPE") is None

    def test_symbol_normalization(self):
        """Test that keys are case-insensitive."""
        cache = TickerCache()
        ticker = _ticker(1.0)
        cache.put("btcusd", ticker)
        assert cache.get("BTCUSD") == ticker

    def test_overwrite(self):
        """Test that a newer update replaces the previous one."""
        cache = TickerCache()
        cache.put("BTCUSD", _ticker(1.0))
        newer = _ticker(2.0)
        cache.put("BTCUSD", newer)
        assert cache.get("BTCUSD") == newer
        assert len(cache) == 1

    def test_expires_after_ttl(self):
        """Test that an entry is absent once the TTL has elapsed."""
        clock = FakeClock()
        cache = TickerCache(clock=clock)
        cache.put("BTCUSD", _ticker(1.0))

        clock.advance(29.5)
        assert cache.get("BTCUSD") is not None
        clock.advance(0.5)
        assert cache.get("BTCUSD") is None

    def test_default_ttl_is_thirty_seconds(self):
        """Test the fixed default TTL."""
        assert TickerCache().ttl == 30.0

    def test_put_resets_expiry(self):
        """Test that an overwrite restarts the TTL."""
        clock = FakeClock()
        cache = TickerCache(clock=clock)
        cache.put("BTCUSD", _ticker(1.0))
        clock.advance(20)
        entry = cache.put("BTCUSD", _ticker(2.0))
        assert entry.expiry == clock.now + 30
        clock.advance(20)
        assert cache.get("BTCUSD").last_price == 2.0

    def test_expired_entry_not_removed(self):
        """Test that reads do not evict; a later put revives the symbol."""
        clock = FakeClock()
        cache = TickerCache(ttl=5, clock=clock)
        cache.put("BTCUSD", _ticker(1.0))
        clock.advance(10)
        assert cache.get("BTCUSD") is None
        assert "BTCUSD" in cache._entries
        cache.put("BTCUSD", _ticker(3.0))
        assert cache.get("BTCUSD").last_price == 3.0

    def test_get_all_skips_expired(self):
        """Test that get_all only returns live entries."""
        clock = FakeClock()
        cache = TickerCache(clock=clock)
        cache.put("BTCUSD", _ticker(1.0))
        clock.advance(20)
        cache.put("ETHUSD", _ticker(2.0, "ETHUSD"))
        clock.advance(15)
        assert set(cache.get_all()) == {"ETHUSD"}

    def test_remove(self):
        """Test removing a symbol from the cache."""
        cache = TickerCache()
        cache.put("BTCUSD", _ticker(1.0))
        cache.remove("BTCUSD")
        assert cache.get("BTCUSD") is None

    def test_remove_nonexistent(self):
        """Test removing a symbol that doesn't exist."""
        cache = TickerCache()
        cache.remove("BTCUSD")  # Should not raise

    def test_version_increments(self):
        """Test that version counter increments."""
        cache = TickerCache()
        v0 = cache.version
        cache.put("BTCUSD", _ticker(1.0))
        assert cache.version == v0 + 1
        cache.put("BTCUSD", _ticker(2.0))
        assert cache.version == v0 + 2

    def test_len_and_contains(self):
        """Test __len__ and __contains__ honour expiry."""
        clock = FakeClock()
        cache = TickerCache(clock=clock)
        assert len(cache) == 0
        cache.put("BTCUSD", _ticker(1.0))
        assert len(cache) == 1
        assert "BTCUSD" in cache
        assert "ETHUSD" not in cache
        clock.advance(31)
        assert len(cache) == 0
        assert "BTCUSD" not in cache

    @pytest.mark.asyncio
    async def test_handle_ticker_uses_event_symbol(self):
        """Test the event bus handler keys by the attributed symbol."""
        cache = TickerCache()
        ticker = _ticker(5.0, symbol="ETHUSD")
        await cache.handle_ticker(ticker)
        assert cache.get("ETHUSD") == ticker

    @pytest.mark.asyncio
    async def test_handle_ticker_without_symbol_ignored(self):
        """Test that unattributed tickers are not cached."""
        cache = TickerCache()
        await cache.handle_ticker(_ticker(5.0, symbol=None))
        assert len(cache) == 0
