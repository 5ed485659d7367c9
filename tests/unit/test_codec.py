"""
Tests for REST value encoding.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from firestore_client import InvalidArgumentError
from firestore_client.runtime.codec import (
    decode_bytes,
    decode_fields,
    decode_value,
    encode_bytes,
    encode_fields,
    encode_value,
)


class TestEncodeValue:
    """Test encoding of Python values."""

    @pytest.mark.parametrize("value, expected", [
        (None, {"nullValue": None}),
        (True, {"booleanValue": True}),
        (42, {"integerValue": "42"}),
        (-7, {"integerValue": "-7"}),
        (1.5, {"doubleValue": 1.5}),
        ("text", {"stringValue": "text"}),
        (b"\x00\x01", {"bytesValue": "AAE="}),
    ])
    def test_scalars(self, value, expected):
        assert encode_value(value) == expected

    def test_special_doubles(self):
        assert encode_value(float("nan")) == {"doubleValue": "NaN"}
        assert encode_value(float("inf")) == {"doubleValue": "Infinity"}
        assert encode_value(float("-inf")) == {"doubleValue": "-Infinity"}

    def test_timestamps_are_utc(self):
        moment = datetime(2024, 5, 1, 14, 30, tzinfo=timezone(timedelta(hours=2)))

        assert encode_value(moment) == {"timestampValue": "2024-05-01T12:30:00Z"}
        assert encode_value(datetime(2024, 5, 1)) == {"timestampValue": "2024-05-01T00:00:00Z"}

    def test_nested_values(self):
        encoded = encode_value({"tags": ["a", 1], "meta": {"ok": False}})

        assert encoded == {
            "mapValue": {
                "fields": {
                    "tags": {"arrayValue": {"values": [{"stringValue": "a"}, {"integerValue": "1"}]}},
                    "meta": {"mapValue": {"fields": {"ok": {"booleanValue": False}}}},
                }
            }
        }

    def test_reference(self, firestore, database_root):
        assert encode_value(firestore.doc("col/doc")) == {"referenceValue": f"{database_root}/col/doc"}

    def test_unsupported_type(self):
        with pytest.raises(InvalidArgumentError, match="Cannot encode value of type set"):
            encode_value({1, 2})

    def test_non_string_field_name(self):
        with pytest.raises(InvalidArgumentError, match="Field names must be strings"):
            encode_fields({1: "x"})


class TestDecodeValue:
    """Test decoding of REST values."""

    def test_fields(self):
        fields = {
            "n": {"integerValue": "12"},
            "d": {"doubleValue": 0.5},
            "s": {"stringValue": "x"},
            "b": {"bytesValue": "AAE="},
            "t": {"timestampValue": "2024-01-01T00:00:00Z"},
            "z": {"nullValue": None},
            "list": {"arrayValue": {}},
            "map": {"mapValue": {"fields": {"flag": {"booleanValue": True}}}},
        }

        assert decode_fields(fields) == {
            "n": 12,
            "d": 0.5,
            "s": "x",
            "b": b"\x00\x01",
            "t": "2024-01-01T00:00:00Z",
            "z": None,
            "list": [],
            "map": {"flag": True},
        }

    def test_special_doubles(self):
        assert math.isnan(decode_value({"doubleValue": "NaN"}))
        assert decode_value({"doubleValue": "-Infinity"}) == float("-inf")

    def test_empty_fields(self):
        assert decode_fields(None) == {}

    def test_unknown_value(self):
        with pytest.raises(InvalidArgumentError):
            decode_value({"geoPointValue": {}})


def test_transaction_handles():
    assert encode_bytes(b"tx-1") == "dHgtMQ=="
    assert decode_bytes("dHgtMQ==") == b"tx-1"
    assert decode_bytes(b"raw") == b"raw"
