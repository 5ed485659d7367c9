"""
Firestore REST value encoding.

Converts plain Python values to and from the typed JSON representation
used by the Firestore REST API (``{"stringValue": "x"}`` and friends).
Sentinel field values and geo points are not supported.
"""

from __future__ import annotations
import base64
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import InvalidArgumentError


def encode_value(value: Any) -> Dict[str, Any]:
    """
    Encode a Python value as a Firestore REST value.

    Args:
        value: None, bool, int, float, str, bytes, datetime, list, dict or DocumentReference

    Returns:
        Typed value dictionary

    Raises:
        InvalidArgumentError: If the value type is not supported
    """
    from ..reference import DocumentReference

    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        # int64 values travel as decimal strings
        return {"integerValue": str(value)}
    if isinstance(value, float):
        if math.isnan(value):
            return {"doubleValue": "NaN"}
        if math.isinf(value):
            return {"doubleValue": "Infinity" if value > 0 else "-Infinity"}
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (bytes, bytearray)):
        return {"bytesValue": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return {"timestampValue": value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")}
    if isinstance(value, DocumentReference):
        return {"referenceValue": value.formatted_name}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise InvalidArgumentError(f"Cannot encode value of type {type(value).__name__}")


def encode_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Encode a mapping of field names to values."""
    fields = {}
    for key, value in data.items():
        if not isinstance(key, str):
            raise InvalidArgumentError(f"Field names must be strings, got {type(key).__name__}")
        fields[key] = encode_value(value)
    return fields


def decode_value(value: Dict[str, Any]) -> Any:
    """
    Decode a Firestore REST value into a Python value.

    Timestamps and references are returned in their string form.

    Raises:
        InvalidArgumentError: If the value has no recognizable type
    """
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    if "timestampValue" in value:
        return value["timestampValue"]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    raise InvalidArgumentError(f"Cannot decode value with keys {sorted(value)}")


def decode_fields(fields: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Decode a mapping of field names to typed values."""
    return {key: decode_value(value) for key, value in (fields or {}).items()}


def encode_bytes(data: bytes) -> str:
    """Base64-encode a transaction handle for the REST API."""
    return base64.b64encode(data).decode("ascii")


def decode_bytes(data: Any) -> bytes:
    """Decode a base64 transaction handle returned by the REST API."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    return base64.b64decode(data)
