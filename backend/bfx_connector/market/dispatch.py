"""Routing of decoded websocket messages to market event handlers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .classifier import classify_frame, is_data_frame
from .exceptions import HandlerError
from .models import Candle, MarketEvent, Subscription, Ticker, Trade, Unrecognized

if TYPE_CHECKING:
    from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)

E = TypeVar("E")
Handler = Callable[[E], Awaitable[None]]


def _handler_name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class _HandlerList(Generic[E]):
    """Ordered handler registrations for one event kind."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._handlers: list[Handler[E]] = []

    def add(self, handler: Handler[E]) -> Callable[[], None]:
        self._handlers.append(handler)

        def remove() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return remove

    def __len__(self) -> int:
        return len(self._handlers)

    async def deliver(self, event: E) -> None:
        # Copy so a handler can unregister itself mid-delivery
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception as e:
                error = HandlerError(_handler_name(handler), self.kind, e)
                logger.error("%s", error, exc_info=e)


class EventBus:
    """Three independent multicast streams: ticker updates, trades and candles.

    Handlers are coroutines, awaited one after another in registration order,
    so events for a symbol are handled in arrival order. A failing handler is
    logged and the remaining handlers still run. Wrap slow handlers with
    ``in_background`` so they do not stall the receive loop.
    """

    def __init__(self) -> None:
        self._tickers: _HandlerList[Ticker] = _HandlerList("ticker")
        self._trades: _HandlerList[Trade] = _HandlerList("trade")
        self._candles: _HandlerList[Candle] = _HandlerList("candle")

    def on_ticker(self, handler: Handler[Ticker]) -> Callable[[], None]:
        """Register a ticker handler. Returns a callable that unregisters it."""
        return self._tickers.add(handler)

    def on_trade(self, handler: Handler[Trade]) -> Callable[[], None]:
        return self._trades.add(handler)

    def on_candle(self, handler: Handler[Candle]) -> Callable[[], None]:
        return self._candles.add(handler)

    def handler_counts(self) -> dict[str, int]:
        return {
            "ticker": len(self._tickers),
            "trade": len(self._trades),
            "candle": len(self._candles),
        }

    async def publish(self, event: MarketEvent) -> None:
        if isinstance(event, Ticker):
            await self._tickers.deliver(event)
        elif isinstance(event, Trade):
            await self._trades.deliver(event)
        elif isinstance(event, Candle):
            await self._candles.deliver(event)
        else:
            raise TypeError(f"Not a market event: {event!r}")


def in_background(handler: Handler[E]) -> Handler[E]:
    """Wrap ``handler`` so each call runs in its own task.

    The wrapper returns as soon as the task is scheduled. Ordering between
    events is no longer guaranteed for the wrapped handler.
    """
    tasks: set[asyncio.Task] = set()
    name = _handler_name(handler)

    def _done(task: asyncio.Task) -> None:
        tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background handler %s failed: %r", name, exc, exc_info=exc)

    async def wrapper(event: E) -> None:
        task = asyncio.create_task(handler(event), name=f"handler-{name}")
        tasks.add(task)
        task.add_done_callback(_done)

    wrapper.__qualname__ = f"in_background({name})"
    wrapper.pending = tasks  # type: ignore[attr-defined]
    return wrapper


class Dispatcher:
    """Turns decoded messages into attributed market events on the bus.

    Control events (JSON objects) maintain the channel id -> subscription
    bindings in the registry; an acknowledgement for a subscription that was
    dropped meanwhile is released instead. Data frames are classified,
    stamped with the symbol (and timeframe) of the subscription that owns
    their channel id, then published.
    """

    def __init__(self, registry: SubscriptionRegistry, bus: EventBus) -> None:
        self._registry = registry
        self._bus = bus
        self.dropped: int = 0

    @property
    def bus(self) -> EventBus:
        return self._bus

    async def handle_message(self, message: Any) -> None:
        if isinstance(message, dict):
            await self._handle_control(message)
        elif is_data_frame(message):
            await self._handle_data(message)
        else:
            self.dropped += 1
            logger.warning("Dropping unexpected message: %r", message)

    async def _handle_control(self, event: dict[str, Any]) -> None:
        kind = event.get("event")
        if kind == "subscribed":
            chan_id = event.get("chanId")
            try:
                subscription = Subscription.from_ack(event)
            except ValueError as e:
                logger.warning("Unusable subscribe acknowledgement %r: %s", event, e)
                return
            if not isinstance(chan_id, int):
                logger.warning("Subscribe acknowledgement without channel id: %r", event)
                return
            if await self._registry.accept(chan_id, subscription):
                logger.info("Channel %d bound to %s", chan_id, subscription)
        elif kind == "unsubscribed":
            chan_id = event.get("chanId")
            subscription = self._registry.unbind(chan_id)
            logger.info("Channel %s released (%s)", chan_id, subscription)
        elif kind == "error":
            logger.warning("Bitfinex error %s: %s", event.get("code"), event.get("msg"))
        else:
            logger.debug("Control event: %r", event)

    async def _handle_data(self, frame: list[Any]) -> None:
        chan_id = frame[0]
        subscription = self._registry.subscription_for(chan_id)
        if subscription is None:
            self.dropped += 1
            logger.warning("Dropping update for unknown channel %d", chan_id)
            return

        for item in classify_frame(frame):
            if isinstance(item, Unrecognized):
                self.dropped += 1
                logger.warning(
                    "Dropping unrecognised element on %s: %s (%r)",
                    subscription,
                    item.reason,
                    item.raw,
                )
                continue
            await self._bus.publish(item.with_subscription(subscription))
