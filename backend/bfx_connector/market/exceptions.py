"""Errors raised by the streaming subsystem."""

from __future__ import annotations


class StreamError(Exception):
    """Base exception for the market streaming subsystem."""


class StreamConnectionError(StreamError, ConnectionError):
    """Raised when the websocket handshake does not complete."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Could not connect to {url}: {reason}")


class NotConnectedError(StreamError):
    """Raised when a frame is sent while the connection is not open."""

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"Connection is not open (state: {state})")


class DecodeError(StreamError, ValueError):
    """Raised for a malformed or unrecognised wire payload.

    Never escapes the receive loop; it is logged and the message is dropped.
    """


class HandlerError(StreamError):
    """Wraps an exception raised by an event handler so it can be logged."""

    def __init__(self, handler_name: str, event_kind: str, cause: BaseException) -> None:
        self.handler_name = handler_name
        self.event_kind = event_kind
        self.cause = cause
        super().__init__(f"Handler {handler_name} failed on {event_kind}: {cause!r}")
