"""Tests for the tagged value model and its conversions."""

from datetime import datetime, timezone

import pytest

from shared.models.value import (
    ArrayValue,
    BooleanValue,
    DoubleValue,
    IntegerValue,
    MapValue,
    NullValue,
    StringValue,
    TimestampValue,
    ValueTag,
    coerce_value,
    document_from_wire,
    value_from_python,
    value_from_wire,
)


class TestFromPython:
    """Plain Python data maps onto exactly one tag."""

    def test_bool_is_not_an_integer(self):
        assert value_from_python(True) == BooleanValue(value=True)
        assert value_from_python(1) == IntegerValue(value=1)

    def test_integer_and_double_never_compare_equal(self):
        assert value_from_python(1) != value_from_python(1.0)
        assert value_from_python(1.0).kind == ValueTag.DOUBLE

    def test_nested_structures(self):
        value = value_from_python({"tags": ["a", None], "meta": {"n": 2}})
        assert isinstance(value, MapValue)
        assert value.get("tags") == ArrayValue(values=[StringValue(value="a"), NullValue()])
        assert value.get("meta").get("n") == IntegerValue(value=2)

    def test_unsupported_type_raises(self):
        with pytest.raises(ValueError):
            value_from_python(object())

    def test_non_string_map_key_raises(self):
        with pytest.raises(ValueError):
            value_from_python({1: "x"})

    def test_naive_datetime_is_utc(self):
        value = value_from_python(datetime(2024, 1, 2, 3, 4, 5))
        assert isinstance(value, TimestampValue)
        assert value.value.utcoffset().total_seconds() == 0


class TestWire:
    """REST encoding of values."""

    def test_integer_travels_as_string(self):
        assert IntegerValue(value=42).to_wire() == {"integerValue": "42"}
        assert value_from_wire({"integerValue": "42"}) == IntegerValue(value=42)

    def test_timestamp_with_nanoseconds_is_truncated(self):
        value = value_from_wire({"timestampValue": "2024-05-01T10:20:30.123456789Z"})
        assert value.value == datetime(2024, 5, 1, 10, 20, 30, 123456, tzinfo=timezone.utc)
        assert value.to_wire() == {"timestampValue": "2024-05-01T10:20:30.123456Z"}

    def test_reference_decodes_to_string(self):
        value = value_from_wire({"referenceValue": "projects/p/databases/(default)/documents/users/a"})
        assert isinstance(value, StringValue)

    def test_geo_point_decodes_to_map(self):
        value = value_from_wire({"geoPointValue": {"latitude": 1.5, "longitude": 2.5}})
        assert value.get("latitude") == DoubleValue(value=1.5)

    def test_unknown_wire_key_raises(self):
        with pytest.raises(ValueError):
            value_from_wire({"fooValue": 1})

    def test_document_from_wire(self):
        doc = document_from_wire({
            "name": {"stringValue": "Ada"},
            "tags": {"arrayValue": {"values": [{"stringValue": "x"}]}},
            "empty": {"arrayValue": {}},
            "gone": {"nullValue": None},
        })
        assert doc.to_python() == {"name": "Ada", "tags": ["x"], "empty": [], "gone": None}

    def test_coerce_prefers_wire_encoding(self):
        assert coerce_value({"stringValue": "x"}) == StringValue(value="x")
        assert coerce_value({"other": "x"}) == MapValue(fields={"other": StringValue(value="x")})


def test_to_json_renders_timestamps_as_text():
    value = value_from_python({"at": datetime(2024, 1, 1, tzinfo=timezone.utc)})
    assert value.to_json() == {"at": "2024-01-01T00:00:00Z"}
