"""Dynamic value model of the document store.

Every field of a stored document resolves to exactly one tagged value. The
models here are backend-independent; the ``*_wire`` helpers translate to and
from the store's REST encoding (``{"stringValue": "..."}`` and friends).

Hierarchy:
  BaseValue          : common conversions shared by every tag.
  StringValue ... NullValue : one frozen model per tag.
  Value              : discriminated union over all tags (``tag`` field).
"""

import json
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ValueTag(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    ARRAY = "array"
    MAP = "map"
    NULL = "null"


# wire key -> tag, used to recognise a REST-encoded value
WIRE_KEYS: dict[str, ValueTag] = {
    "stringValue": ValueTag.STRING,
    "integerValue": ValueTag.INTEGER,
    "doubleValue": ValueTag.DOUBLE,
    "booleanValue": ValueTag.BOOLEAN,
    "timestampValue": ValueTag.TIMESTAMP,
    "arrayValue": ValueTag.ARRAY,
    "mapValue": ValueTag.MAP,
    "nullValue": ValueTag.NULL,
    "referenceValue": ValueTag.STRING,
    "bytesValue": ValueTag.STRING,
    "geoPointValue": ValueTag.MAP,
}

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 timestamp as sent by the store.

    Nanosecond fractions are truncated to microseconds. Values without an
    offset are taken as UTC.

    Args:
        text (str): The timestamp string, e.g. "2024-01-01T12:00:00.123456789Z".

    Returns:
        datetime: A timezone-aware datetime in UTC.

    Raises:
        ValueError: If the string is not a valid timestamp.
    """
    normalized = text.strip()
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    normalized = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1)
    parsed = datetime.fromisoformat(normalized)
    return _to_utc(parsed)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as an RFC 3339 UTC string ending in ``Z``."""
    return _to_utc(value).isoformat().replace("+00:00", "Z")


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


class BaseValue(BaseModel):
    """Common behaviour of all tagged values."""

    model_config = ConfigDict(frozen=True)

    @property
    def kind(self) -> ValueTag:
        return ValueTag(self.tag)

    @property
    def is_numeric(self) -> bool:
        return self.kind in (ValueTag.INTEGER, ValueTag.DOUBLE)

    def to_python(self) -> Any:
        """Convert to plain Python data (timestamps stay datetimes)."""
        raise NotImplementedError

    def to_json(self) -> Any:
        """Convert to JSON-serialisable data (timestamps become RFC 3339 strings)."""
        return self.to_python()

    def to_wire(self) -> dict:
        """Convert to the store's REST encoding."""
        raise NotImplementedError

    def describe(self) -> str:
        """Short literal rendering used in messages."""
        return json.dumps(self.to_json(), ensure_ascii=False)


class StringValue(BaseValue):
    tag: Literal["string"] = "string"
    value: str

    def to_python(self) -> Any:
        return self.value

    def to_wire(self) -> dict:
        return {"stringValue": self.value}


class IntegerValue(BaseValue):
    tag: Literal["integer"] = "integer"
    value: int

    def to_python(self) -> Any:
        return self.value

    def to_wire(self) -> dict:
        # the REST API carries 64-bit integers as decimal strings
        return {"integerValue": str(self.value)}


class DoubleValue(BaseValue):
    tag: Literal["double"] = "double"
    value: float

    def to_python(self) -> Any:
        return self.value

    def to_wire(self) -> dict:
        return {"doubleValue": self.value}


class BooleanValue(BaseValue):
    tag: Literal["boolean"] = "boolean"
    value: bool

    def to_python(self) -> Any:
        return self.value

    def to_wire(self) -> dict:
        return {"booleanValue": self.value}


class TimestampValue(BaseValue):
    tag: Literal["timestamp"] = "timestamp"
    value: datetime

    @field_validator("value")
    @classmethod
    def _normalize(cls, value: datetime) -> datetime:
        return _to_utc(value)

    def to_python(self) -> Any:
        return self.value

    def to_json(self) -> Any:
        return format_timestamp(self.value)

    def to_wire(self) -> dict:
        return {"timestampValue": format_timestamp(self.value)}


class ArrayValue(BaseValue):
    tag: Literal["array"] = "array"
    values: list["Value"] = Field(default_factory=list)

    def to_python(self) -> Any:
        return [item.to_python() for item in self.values]

    def to_json(self) -> Any:
        return [item.to_json() for item in self.values]

    def to_wire(self) -> dict:
        return {"arrayValue": {"values": [item.to_wire() for item in self.values]}}


class MapValue(BaseValue):
    tag: Literal["map"] = "map"
    fields: dict[str, "Value"] = Field(default_factory=dict)

    def get(self, name: str, default: "Value | None" = None) -> "Value | None":
        return self.fields.get(name, default)

    def has(self, name: str) -> bool:
        return name in self.fields

    def to_python(self) -> Any:
        return {name: item.to_python() for name, item in self.fields.items()}

    def to_json(self) -> Any:
        return {name: item.to_json() for name, item in self.fields.items()}

    def to_wire(self) -> dict:
        return {"mapValue": {"fields": self.to_wire_fields()}}

    def to_wire_fields(self) -> dict:
        """Encode only the field mapping, as used in a document body."""
        return {name: item.to_wire() for name, item in self.fields.items()}


class NullValue(BaseValue):
    tag: Literal["null"] = "null"

    def to_python(self) -> Any:
        return None

    def to_wire(self) -> dict:
        return {"nullValue": None}


Value = Annotated[
    Union[StringValue, IntegerValue, DoubleValue, BooleanValue, TimestampValue, ArrayValue, MapValue, NullValue],
    Field(discriminator="tag"),
]

ArrayValue.model_rebuild()
MapValue.model_rebuild()


##########################################
############## CONVERSIONS ###############
##########################################

def value_from_python(obj: Any) -> BaseValue:
    """Build a tagged value from plain Python data.

    Args:
        obj (Any): str, int, float, bool, datetime, list/tuple, dict, None or an existing value.

    Returns:
        BaseValue: The tagged value.

    Raises:
        ValueError: If the object (or a nested element) has no value tag.
    """
    if isinstance(obj, BaseValue):
        return obj
    if obj is None:
        return NullValue()
    # bool is a subclass of int, check it first
    if isinstance(obj, bool):
        return BooleanValue(value=obj)
    if isinstance(obj, int):
        return IntegerValue(value=obj)
    if isinstance(obj, float):
        return DoubleValue(value=obj)
    if isinstance(obj, str):
        return StringValue(value=obj)
    if isinstance(obj, datetime):
        return TimestampValue(value=obj)
    if isinstance(obj, (list, tuple)):
        return ArrayValue(values=[value_from_python(item) for item in obj])
    if isinstance(obj, dict):
        fields = {}
        for name, item in obj.items():
            if not isinstance(name, str):
                raise ValueError(f"Map keys must be strings, got {type(name).__name__}: {name!r}")
            fields[name] = value_from_python(item)
        return MapValue(fields=fields)
    raise ValueError(f"Unsupported value type '{type(obj).__name__}': {obj!r}")


def value_from_wire(obj: dict) -> BaseValue:
    """Decode a value from the store's REST encoding.

    Args:
        obj (dict): A single-key mapping such as ``{"integerValue": "42"}``.

    Returns:
        BaseValue: The decoded value.

    Raises:
        ValueError: If the mapping is not a recognised wire value.
    """
    if not isinstance(obj, dict) or len(obj) != 1:
        raise ValueError(f"Wire value must be a single-key object, got: {obj!r}")
    key, payload = next(iter(obj.items()))

    if key in ("stringValue", "referenceValue", "bytesValue"):
        return StringValue(value=payload)
    if key == "integerValue":
        return IntegerValue(value=int(payload))
    if key == "doubleValue":
        return DoubleValue(value=float(payload))
    if key == "booleanValue":
        return BooleanValue(value=bool(payload))
    if key == "timestampValue":
        return TimestampValue(value=parse_timestamp(payload))
    if key == "nullValue":
        return NullValue()
    if key == "arrayValue":
        items = (payload or {}).get("values", [])
        return ArrayValue(values=[value_from_wire(item) for item in items])
    if key == "mapValue":
        return document_from_wire((payload or {}).get("fields", {}))
    if key == "geoPointValue":
        return MapValue(fields={
            "latitude": DoubleValue(value=float(payload.get("latitude", 0.0))),
            "longitude": DoubleValue(value=float(payload.get("longitude", 0.0))),
        })
    raise ValueError(f"Unknown wire value type '{key}'.")


def is_wire_value(obj: Any) -> bool:
    """True if ``obj`` looks like a REST-encoded value (a single known wire key)."""
    return isinstance(obj, dict) and len(obj) == 1 and next(iter(obj)) in WIRE_KEYS


def coerce_value(obj: Any) -> BaseValue:
    """Accept a value, a REST-encoded value or plain Python data.

    A single-key dict whose key is a known wire key is decoded as wire
    encoding; everything else goes through :func:`value_from_python`.
    """
    if isinstance(obj, BaseValue):
        return obj
    if is_wire_value(obj):
        return value_from_wire(obj)
    return value_from_python(obj)


def document_from_python(document: dict | MapValue) -> MapValue:
    """Build a document (map value) from a plain dict."""
    if isinstance(document, MapValue):
        return document
    if not isinstance(document, dict):
        raise ValueError(f"Document must be a mapping, got {type(document).__name__}.")
    return value_from_python(document)


def document_from_wire(fields: dict) -> MapValue:
    """Build a document (map value) from a REST ``fields`` mapping."""
    return MapValue(fields={name: value_from_wire(item) for name, item in (fields or {}).items()})
