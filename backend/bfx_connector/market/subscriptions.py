"""Bookkeeping for streaming channel subscriptions."""

from __future__ import annotations

import logging
from threading import Lock

from .connection import ConnectionManager
from .exceptions import NotConnectedError
from .models import Channel, Subscription

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Outstanding subscriptions plus the channel ids the server assigned them.

    A subscription is recorded once per (channel, symbol, timeframe); repeat
    requests for a recorded tuple send nothing. Channel ids only live as long
    as the socket that issued them, so ``replay_all`` drops them before
    re-subscribing on a fresh connection. Replay runs automatically after
    every reconnection.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection
        self._subscriptions: dict[Subscription, None] = {}  # Ordered set
        self._channels: dict[int, Subscription] = {}
        self._lock = Lock()
        connection.on_reconnect(self.replay_all)

    async def subscribe(
        self, channel: Channel | str, symbol: str, timeframe: str | None = None
    ) -> Subscription:
        """Record the subscription and send its subscribe frame if it is new.

        Raises NotConnectedError when the connection is not open. If sending
        fails the record is rolled back.
        """
        subscription = Subscription(Channel(channel), symbol, timeframe)
        if not self._connection.is_open:
            raise NotConnectedError(self._connection.state.value)

        with self._lock:
            if subscription in self._subscriptions:
                logger.debug("Already subscribed to %s", subscription)
                return subscription
            self._subscriptions[subscription] = None

        try:
            await self._connection.send(subscription.subscribe_frame())
        except BaseException:
            with self._lock:
                self._subscriptions.pop(subscription, None)
            raise
        logger.info("Subscribed to %s", subscription)
        return subscription

    async def unsubscribe(
        self, channel: Channel | str, symbol: str, timeframe: str | None = None
    ) -> bool:
        """Forget the subscription; tell the server if we know its channel id.

        Returns False if the subscription was not recorded.
        """
        subscription = Subscription(Channel(channel), symbol, timeframe)
        with self._lock:
            if subscription not in self._subscriptions:
                return False
            del self._subscriptions[subscription]
            chan_id = self._channel_id_locked(subscription)
            if chan_id is not None:
                del self._channels[chan_id]

        if chan_id is None:
            logger.info("Unsubscribed from %s (no channel bound yet)", subscription)
        elif self._connection.is_open:
            await self._connection.send(Subscription.unsubscribe_frame(chan_id))
            logger.info("Unsubscribed from %s (channel %d)", subscription, chan_id)
        else:
            logger.info("Unsubscribed from %s while disconnected", subscription)
        return True

    async def replay_all(self) -> None:
        """Re-send one subscribe frame per recorded subscription."""
        with self._lock:
            self._channels.clear()
            pending = list(self._subscriptions)

        for subscription in pending:
            await self._connection.send(subscription.subscribe_frame())
        logger.info("Replayed %d subscription(s)", len(pending))

    def subscriptions(self) -> list[Subscription]:
        with self._lock:
            return list(self._subscriptions)

    def __contains__(self, subscription: Subscription) -> bool:
        with self._lock:
            return subscription in self._subscriptions

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    # --- Channel bindings ---

    def bind(self, chan_id: int, subscription: Subscription) -> None:
        with self._lock:
            self._channels[chan_id] = subscription

    async def accept(self, chan_id: int, subscription: Subscription) -> bool:
        """Bind an acknowledged channel if the subscription is still wanted.

        An acknowledgement can arrive after the caller already unsubscribed;
        that channel is not bound and the server is told to drop it. Returns
        True when the channel was bound.
        """
        with self._lock:
            wanted = subscription in self._subscriptions
            if wanted:
                self._channels[chan_id] = subscription
        if wanted:
            return True

        if self._connection.is_open:
            await self._connection.send(Subscription.unsubscribe_frame(chan_id))
        logger.info("Released channel %d for dropped subscription %s", chan_id, subscription)
        return False

    def unbind(self, chan_id: object) -> Subscription | None:
        with self._lock:
            return self._channels.pop(chan_id, None)  # type: ignore[arg-type]

    def subscription_for(self, chan_id: int) -> Subscription | None:
        with self._lock:
            return self._channels.get(chan_id)

    def channel_id_for(self, subscription: Subscription) -> int | None:
        with self._lock:
            return self._channel_id_locked(subscription)

    def _channel_id_locked(self, subscription: Subscription) -> int | None:
        for chan_id, bound in self._channels.items():
            if bound == subscription:
                return chan_id
        return None
