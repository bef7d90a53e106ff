"""Bitfinex market data connector: realtime feed, ticker cache and REST snapshots."""

__version__ = "0.1.0"
