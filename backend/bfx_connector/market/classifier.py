"""Classification of Bitfinex public-channel payloads.

Data frames are positional arrays with no type tag, so the element length
decides what an update is:

    4 fields   -> Trade   [ID, MTS, AMOUNT, PRICE]
    6 fields   -> Candle  [MTS, OPEN, CLOSE, HIGH, LOW, VOLUME]
    10+ fields -> Ticker  [BID, BID_SIZE, ASK, ASK_SIZE, DAILY_CHANGE,
                           DAILY_CHANGE_RELATIVE, LAST_PRICE, VOLUME, HIGH, LOW]

Anything else, or any field of the wrong type, becomes ``Unrecognized``.
Classification never raises.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from .exceptions import DecodeError
from .models import Candle, Ticker, Trade, Unrecognized

logger = logging.getLogger(__name__)

TRADE_LENGTH = 4
CANDLE_LENGTH = 6
TICKER_MIN_LENGTH = 10

# Message-type markers that can sit between the channel id and the payload
TRADE_EXECUTED = "te"
TRADE_UPDATED = "tu"  # Same trade as "te", re-sent once it has an id; ignored
HEARTBEAT = "hb"

Classified = Ticker | Trade | Candle | Unrecognized


def decode_message(raw: str | bytes) -> Any:
    """Decode one websocket message into a JSON value."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError, RecursionError) as e:
        raise DecodeError(f"Invalid JSON message: {e}") from e


def is_data_frame(message: Any) -> bool:
    """True for ``[chanId, ...]`` arrays; control events are JSON objects."""
    return (
        isinstance(message, list)
        and len(message) >= 2
        and isinstance(message[0], int)
        and not isinstance(message[0], bool)
    )


def _number(element: Sequence[Any], index: int) -> float:
    value = element[index]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"field {index} is not a number: {value!r}")
    return float(value)


def _integer(element: Sequence[Any], index: int) -> int:
    value = element[index]
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"field {index} is not an integer: {value!r}")
    return value


def _timestamp(element: Sequence[Any], index: int) -> datetime:
    millis = _integer(element, index)
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise DecodeError(f"field {index} is not a valid timestamp: {millis!r}") from e


def parse_trade(element: Sequence[Any]) -> Trade:
    return Trade(
        id=_integer(element, 0),
        timestamp=_timestamp(element, 1),
        amount=_number(element, 2),
        price=_number(element, 3),
    )


def parse_candle(element: Sequence[Any]) -> Candle:
    return Candle(
        timestamp=_timestamp(element, 0),
        open=_number(element, 1),
        close=_number(element, 2),
        high=_number(element, 3),
        low=_number(element, 4),
        volume=_number(element, 5),
    )


def parse_ticker(element: Sequence[Any]) -> Ticker:
    return Ticker(
        daily_change=_number(element, 4),
        daily_change_percent=_number(element, 5),
        last_price=_number(element, 6),
        volume=_number(element, 7),
        high=_number(element, 8),
        low=_number(element, 9),
    )


def classify_element(element: Any) -> Classified:
    """Map one flat update array onto its market event."""
    if not isinstance(element, list):
        return Unrecognized(element, "not an array")

    length = len(element)
    try:
        if length == TRADE_LENGTH:
            return parse_trade(element)
        if length == CANDLE_LENGTH:
            return parse_candle(element)
        if length >= TICKER_MIN_LENGTH:
            return parse_ticker(element)
    except DecodeError as e:
        return Unrecognized(element, str(e))
    return Unrecognized(element, f"unexpected length {length}")


def classify_payload(payload: Any) -> list[Classified]:
    """Classify a single update or a (possibly nested) snapshot.

    A payload whose first element is itself an array is a snapshot; each of
    its elements is classified on its own.
    """
    if not isinstance(payload, list):
        return [Unrecognized(payload, "payload is not an array")]
    if payload and isinstance(payload[0], list):
        results: list[Classified] = []
        for item in payload:
            results.extend(classify_payload(item))
        return results
    return [classify_element(payload)]


def classify_frame(frame: list[Any]) -> list[Classified]:
    """Classify the payload of a ``[chanId, ...]`` data frame.

    Heartbeats and trade-update duplicates produce no events.
    """
    if len(frame) == 2:
        payload = frame[1]
        if payload == HEARTBEAT:
            return []
        return classify_payload(payload)

    marker = frame[1]
    if marker == TRADE_EXECUTED and len(frame) >= 3:
        return classify_payload(frame[2])
    if marker in (TRADE_UPDATED, HEARTBEAT):
        return []
    return [Unrecognized(frame, f"unexpected frame marker {marker!r}")]
