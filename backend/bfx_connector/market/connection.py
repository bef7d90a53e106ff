"""Websocket connection lifecycle for the Bitfinex public feed."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .classifier import decode_message
from .exceptions import DecodeError, NotConnectedError, StreamConnectionError
from .models import ConnectionState

logger = logging.getLogger(__name__)

BITFINEX_WS_URL = "wss://api-pub.bitfinex.com/ws/2"
DEFAULT_RECONNECT_DELAY = 5.0
NORMAL_CLOSURE = 1000

MessageCallback = Callable[[Any], Awaitable[None]]
ReconnectCallback = Callable[[], Awaitable[None]]
Connector = Callable[[str], Awaitable[Any]]


async def _websockets_connector(url: str) -> Any:
    return await websockets.connect(url, open_timeout=10, close_timeout=5, max_size=None)


class ConnectionManager:
    """Owns the single streaming socket and its receive loop.

    Lifecycle:
        manager = ConnectionManager(on_message=dispatcher.handle_message)
        await manager.connect()        # starts the receive loop
        await manager.send({...})      # only while OPEN
        await manager.close()          # idempotent

    On unexpected closure the receive task switches to reconnecting: it dials
    again immediately and then every ``reconnect_delay`` seconds until a dial
    succeeds, then runs the reconnect callbacks (subscription replay).
    """

    def __init__(
        self,
        url: str = BITFINEX_WS_URL,
        on_message: MessageCallback | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        connector: Connector | None = None,
    ) -> None:
        self._url = url
        self._on_message = on_message
        self._reconnect_delay = reconnect_delay
        self._connector = connector or _websockets_connector
        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self._reconnect_callbacks: list[ReconnectCallback] = []

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    def set_message_callback(self, callback: MessageCallback) -> None:
        self._on_message = callback

    def on_reconnect(self, callback: ReconnectCallback) -> None:
        """Register a coroutine to run after every successful reconnection."""
        self._reconnect_callbacks.append(callback)

    async def connect(self) -> None:
        """Open the socket if it is not already open.

        Raises StreamConnectionError if the handshake fails; the state is left
        as it was so the caller (or the reconnect loop) can try again.
        """
        async with self._lock:
            if self._state is ConnectionState.OPEN:
                return

            previous = self._state
            if previous is ConnectionState.CLOSING:
                previous = ConnectionState.DISCONNECTED
            self._state = ConnectionState.CONNECTING
            logger.info("Connecting to %s", self._url)

            try:
                ws = await self._connector(self._url)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                self._state = previous
                raise StreamConnectionError(self._url, str(e) or e.__class__.__name__) from e
            except BaseException:
                self._state = previous
                raise

            self._ws = ws
            self._state = ConnectionState.OPEN
            self._task = asyncio.create_task(self._receive_loop(ws), name="bitfinex-receive")
            logger.info("Connected to %s", self._url)

            if previous is ConnectionState.RECONNECTING:
                await self._run_reconnect_callbacks()

    async def send(self, frame: Any) -> None:
        """Serialize ``frame`` to JSON and write it as one message."""
        ws = self._ws
        if self._state is not ConnectionState.OPEN or ws is None:
            raise NotConnectedError(self._state.value)

        message = json.dumps(frame)
        try:
            await ws.send(message)
        except ConnectionClosed as e:
            raise NotConnectedError(self._state.value) from e
        logger.debug("Sent %s", message)

    async def close(self) -> None:
        """Close the socket with a normal-closure frame and stop the receive loop."""
        if self._state is ConnectionState.DISCONNECTED and self._task is None:
            return

        self._state = ConnectionState.CLOSING
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close(code=NORMAL_CLOSURE, reason="client closing")
            except (OSError, WebSocketException) as e:
                logger.warning("Error while closing websocket: %s", e)

        task, self._task = self._task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._state = ConnectionState.DISCONNECTED
        logger.info("Websocket connection closed")

    # --- Internal ---

    async def _receive_loop(self, ws: Any) -> None:
        """Read and hand off messages until the socket goes away."""
        try:
            while True:
                raw = await ws.recv()
                try:
                    message = decode_message(raw)
                except DecodeError as e:
                    logger.warning("Discarding malformed message: %s", e)
                    continue

                if self._on_message is None:
                    continue
                try:
                    await self._on_message(message)
                except Exception:
                    logger.exception("Message handler failed")
        except ConnectionClosed as e:
            if self._state is ConnectionState.CLOSING:
                return
            logger.warning("Websocket closed by peer: %s", e)
        except (OSError, WebSocketException) as e:
            if self._state is ConnectionState.CLOSING:
                return
            logger.error("Websocket receive failed: %s", e)
        except Exception:
            if self._state is ConnectionState.CLOSING:
                return
            logger.exception("Receive loop failed unexpectedly")
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.warning("Error while closing websocket: %s", e)

        if self._ws is ws:
            await self._reconnect()

    async def _reconnect(self) -> None:
        """Dial until it works. Fixed delay between attempts, no attempt cap."""
        self._state = ConnectionState.RECONNECTING
        self._ws = None
        logger.warning("Lost connection to %s, reconnecting", self._url)

        attempt = 0
        while self._state is ConnectionState.RECONNECTING:
            attempt += 1
            try:
                await self.connect()
            except StreamConnectionError as e:
                logger.error(
                    "Reconnect attempt %d failed: %s. Retrying in %.1fs",
                    attempt,
                    e.reason,
                    self._reconnect_delay,
                )
                await asyncio.sleep(self._reconnect_delay)
            else:
                logger.info("Connection restored after %d attempt(s)", attempt)
                return

    async def _run_reconnect_callbacks(self) -> None:
        for callback in self._reconnect_callbacks:
            try:
                await callback()
            except Exception:
                logger.exception("Reconnect callback %r failed", callback)
