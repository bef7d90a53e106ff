"""Tests for wire message classification."""

from datetime import datetime, timezone

import pytest

from bfx_connector.market.classifier import (
    classify_element,
    classify_frame,
    classify_payload,
    decode_message,
    is_data_frame,
)
from bfx_connector.market.exceptions import DecodeError
from bfx_connector.market.models import Candle, Ticker, Trade, Unrecognized

TICKER_ROW = [43000.0, 12.5, 43001.0, 9.1, -250.0, -0.0058, 43000.5, 1520.3, 43900.0, 42500.0]


class TestDecode:
    def test_decode_array(self):
        """Test decoding a data frame."""
        assert decode_message("[1,[2,3]]") == [1, [2, 3]]

    def test_decode_bytes(self):
        """Test that binary messages are decoded too."""
        assert decode_message(b'{"event":"info"}') == {"event": "info"}

    def test_decode_invalid_json(self):
        """Test that invalid JSON raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_message("[1, 2")

    def test_is_data_frame(self):
        """Test data frame detection."""
        assert is_data_frame([15, [1, 2, 3, 4]])
        assert is_data_frame([15, "hb"])
        assert not is_data_frame({"event": "subscribed"})
        assert not is_data_frame([15])
        assert not is_data_frame(["15", []])
        assert not is_data_frame([True, []])


class TestClassifyElement:
    """Length-keyed classification of a single update array."""

    def test_trade(self):
        """Test that 4 fields are a Trade with amount/price at 2/3."""
        result = classify_element([401597393, 1574694475039, -0.005, 7244.9])
        assert isinstance(result, Trade)
        assert result.id == 401597393
        assert result.timestamp == datetime.fromtimestamp(1574694475.039, tz=timezone.utc)
        assert result.amount == -0.005
        assert result.price == 7244.9

    def test_candle(self):
        """Test that 6 fields are a Candle with open..volume at 1-5."""
        result = classify_element([1700000000000, 101, 103, 105, 99, 42.5])
        assert isinstance(result, Candle)
        assert result.timestamp == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert (result.open, result.close, result.high, result.low, result.volume) == (
            101.0, 103.0, 105.0, 99.0, 42.5,
        )

    def test_ticker(self):
        """Test that 10 fields are a Ticker with values at offsets 4-9."""
        result = classify_element(TICKER_ROW)
        assert isinstance(result, Ticker)
        assert result.daily_change == -250.0
        assert result.daily_change_percent == -0.0058
        assert result.last_price == 43000.5
        assert result.volume == 1520.3
        assert result.high == 43900.0
        assert result.low == 42500.0
        assert result.symbol is None

    def test_ticker_with_extra_fields(self):
        """Test that longer arrays are still tickers."""
        assert isinstance(classify_element(TICKER_ROW + [1, 2]), Ticker)

    @pytest.mark.parametrize("length", [0, 1, 2, 3, 5, 7, 8, 9])
    def test_other_lengths_unrecognized(self, length):
        """Test that any other length is dropped, not raised."""
        result = classify_element([1] * length)
        assert isinstance(result, Unrecognized)
        assert "length" in result.reason

    def test_string_field_unrecognized(self):
        """Test that numeric strings are not coerced."""
        result = classify_element([1, 1574694475039, "-0.005", 7244.9])
        assert isinstance(result, Unrecognized)

    def test_null_field_unrecognized(self):
        """Test that null fields are dropped."""
        result = classify_element([1700000000000, None, 103, 105, 99, 42.5])
        assert isinstance(result, Unrecognized)

    def test_boolean_field_unrecognized(self):
        """Test that booleans are not treated as numbers."""
        result = classify_element([True, 1574694475039, 1.0, 2.0])
        assert isinstance(result, Unrecognized)

    def test_float_timestamp_unrecognized(self):
        """Test that timestamps must be integer milliseconds."""
        result = classify_element([1, 1574694475039.5, 1.0, 2.0])
        assert isinstance(result, Unrecognized)

    def test_absurd_timestamp_unrecognized(self):
        """Test that an out-of-range timestamp is dropped."""
        result = classify_element([1, 10**20, 1.0, 2.0])
        assert isinstance(result, Unrecognized)

    def test_not_a_list(self):
        """Test that non-array elements are dropped."""
        assert isinstance(classify_element({"a": 1}), Unrecognized)


class TestClassifyPayload:
    def test_single_update(self):
        """Test that a flat payload is one update."""
        results = classify_payload([1, 1574694475039, 0.5, 100.0])
        assert len(results) == 1
        assert isinstance(results[0], Trade)

    def test_snapshot(self):
        """Test that a snapshot is unwrapped and each element classified."""
        snapshot = [
            [3, 1574694475039, 0.5, 100.0],
            [2, 1574694474000, -0.1, 99.5],
            [1, 2],
        ]
        results = classify_payload(snapshot)
        assert [type(r) for r in results] == [Trade, Trade, Unrecognized]
        assert [r.id for r in results[:2]] == [3, 2]

    def test_nested_snapshot(self):
        """Test that snapshots of snapshots are unwrapped recursively."""
        results = classify_payload([[[1700000000000, 1, 2, 3, 0.5, 10]], [[1700000060000, 2, 3, 4, 1, 11]]])
        assert [type(r) for r in results] == [Candle, Candle]

    def test_empty_payload(self):
        """Test that an empty payload is dropped."""
        results = classify_payload([])
        assert len(results) == 1
        assert isinstance(results[0], Unrecognized)


class TestClassifyFrame:
    def test_heartbeat(self):
        """Test that heartbeats produce nothing."""
        assert classify_frame([15, "hb"]) == []

    def test_trade_executed(self):
        """Test the live 'te' trade form."""
        results = classify_frame([17, "te", [5, 1574694475039, 0.25, 7250.0]])
        assert len(results) == 1
        assert isinstance(results[0], Trade)
        assert results[0].price == 7250.0

    def test_trade_update_ignored(self):
        """Test that 'tu' duplicates are ignored."""
        assert classify_frame([17, "tu", [5, 1574694475039, 0.25, 7250.0]]) == []

    def test_unknown_marker(self):
        """Test that an unknown marker is dropped."""
        results = classify_frame([17, "zz", [1, 2, 3, 4]])
        assert len(results) == 1
        assert isinstance(results[0], Unrecognized)

    def test_ticker_frame(self):
        """Test a plain ticker data frame."""
        results = classify_frame([2, TICKER_ROW])
        assert isinstance(results[0], Ticker)
