"""Value codec for the Firestore REST wire format.

Firestore represents every field as a tagged ``Value`` object, e.g.
``{"integerValue": "42"}`` or ``{"mapValue": {"fields": {...}}}``. This module
converts native Python values to that form and back.

Mapping:

==========================  ======================  =========================
Python                      Wire tag                Notes
==========================  ======================  =========================
``None``                    ``nullValue``
``bool``                    ``booleanValue``        checked before ``int``
``int``                     ``integerValue``        decimal string, int64 only
``float``                   ``doubleValue``         NaN/Infinity as strings
``datetime``                ``timestampValue``      UTC, millisecond precision
reference path ``str``      ``referenceValue``      ``projects/../documents/..``
``str``                     ``stringValue``
``bytes``                   ``bytesValue``          standard base64
``{latitude, longitude}``   ``geoPointValue``
``list`` / ``tuple``        ``arrayValue``
other mappings              ``mapValue``
==========================  ======================  =========================
"""

import base64
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .constants import INT64_MAX, INT64_MIN
from .exceptions import InvalidFieldError, ResponseDecodeError
from .types import Value

__all__ = (
    "wrap_value",
    "unwrap_value",
    "wrap_fields",
    "unwrap_fields",
    "is_reference",
    "format_timestamp",
    "parse_timestamp",
)

_SEGMENT = r"[^/\n]+"

# Full document name: an even number of segments below ``documents/``
REFERENCE_PATTERN = re.compile(
    rf"projects/{_SEGMENT}/databases/{_SEGMENT}/documents/{_SEGMENT}/{_SEGMENT}(?:/{_SEGMENT}/{_SEGMENT})*"
)

_GEOPOINT_KEYS = {"latitude", "longitude"}

_SPECIAL_DOUBLES = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}

_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(?P<frac>\d+))?(?P<tz>Z|[+-]\d{2}:\d{2})\Z"
)


def is_reference(value: str) -> bool:
    """Whether a string looks like a full document resource name."""
    return bool(REFERENCE_PATTERN.fullmatch(value))


def _is_geopoint(value: Mapping[str, Any]) -> bool:
    if set(value.keys()) != _GEOPOINT_KEYS:
        return False
    return all(
        isinstance(value[key], (int, float)) and not isinstance(value[key], bool) for key in _GEOPOINT_KEYS
    )


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an RFC 3339 UTC string with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    # Four-digit years, zero-padded below 1000
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}.{value.microsecond // 1000:03d}Z"
    )


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime truncated to milliseconds.

    Raises:
        ResponseDecodeError: If the string is not an RFC 3339 timestamp
    """
    match = _TIMESTAMP_PATTERN.match(value)
    if not match:
        raise ResponseDecodeError("Invalid timestamp value", value=value)
    frac = (match.group("frac") or "")[:3].ljust(3, "0")
    tz = match.group("tz").replace("Z", "+00:00")
    parsed = datetime.fromisoformat(f"{match.group('base')}.{frac}000{tz}")
    return parsed.astimezone(timezone.utc)


def _wrap_double(value: float) -> Value:
    if math.isnan(value):
        return {"doubleValue": "NaN"}
    if math.isinf(value):
        return {"doubleValue": "Infinity" if value > 0 else "-Infinity"}
    return {"doubleValue": value}


def wrap_value(value: Any) -> Value:
    """Convert a native Python value into a Firestore wire ``Value``.

    Raises:
        InvalidFieldError: If the value has no wire representation
    """
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        if not INT64_MIN <= value <= INT64_MAX:
            raise InvalidFieldError("Integer out of 64-bit range", value=value)
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return _wrap_double(value)
    if isinstance(value, datetime):
        return {"timestampValue": format_timestamp(value)}
    if isinstance(value, str):
        if is_reference(value):
            return {"referenceValue": value}
        return {"stringValue": value}
    if isinstance(value, (bytes, bytearray)):
        return {"bytesValue": base64.standard_b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [wrap_value(item) for item in value]}}
    if isinstance(value, Mapping):
        if _is_geopoint(value):
            return {"geoPointValue": {"latitude": value["latitude"], "longitude": value["longitude"]}}
        return {"mapValue": {"fields": wrap_fields(value)}}
    raise InvalidFieldError(f"Unsupported value type: {type(value).__name__}", value=value)


def wrap_fields(fields: Optional[Mapping[str, Any]]) -> Dict[str, Value]:
    """Wrap every entry of a field mapping.

    Raises:
        InvalidFieldError: If a key is not a string or a value cannot be wrapped
    """
    wrapped: Dict[str, Value] = {}
    for key, item in (fields or {}).items():
        if not isinstance(key, str):
            raise InvalidFieldError("Field names must be strings", field=key)
        wrapped[key] = wrap_value(item)
    return wrapped


def _unwrap_double(raw: Any) -> float:
    if isinstance(raw, str):
        if raw in _SPECIAL_DOUBLES:
            return _SPECIAL_DOUBLES[raw]
        try:
            return float(raw)
        except ValueError:
            raise ResponseDecodeError("Invalid double value", value=raw) from None
    return float(raw)


def unwrap_value(value: Value) -> Any:
    """Convert a Firestore wire ``Value`` back into a native Python value.

    Raises:
        ResponseDecodeError: If the value carries no known type tag
    """
    if not isinstance(value, Mapping):
        raise ResponseDecodeError("Wire value must be an object", value=value)
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return _unwrap_double(value["doubleValue"])
    if "timestampValue" in value:
        return parse_timestamp(value["timestampValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "bytesValue" in value:
        return base64.standard_b64decode(value["bytesValue"])
    if "geoPointValue" in value:
        point = value["geoPointValue"] or {}
        # Zero coordinates are omitted on the wire
        return {"latitude": point.get("latitude", 0.0), "longitude": point.get("longitude", 0.0)}
    if "arrayValue" in value:
        items = (value["arrayValue"] or {}).get("values") or []
        return [unwrap_value(item) for item in items]
    if "mapValue" in value:
        return unwrap_fields((value["mapValue"] or {}).get("fields"))
    raise ResponseDecodeError("Unknown wire value type", value=value)


def unwrap_fields(fields: Optional[Mapping[str, Value]]) -> Dict[str, Any]:
    """Unwrap every entry of a wire field mapping."""
    return {key: unwrap_value(item) for key, item in (fields or {}).items()}
