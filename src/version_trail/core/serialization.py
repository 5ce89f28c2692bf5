"""Attribute map codec for stored snapshots.

Snapshots are stored as UTF-8 JSON text. Values JSON has no native form for
are written as tagged objects so they decode back to the same Python type:

    {"__vt_type__": "datetime", "value": "2024-01-01T00:00:00+00:00"}

Keys are sorted on encode so equal maps always produce identical text. A key
missing from the map stays missing, which keeps "attribute absent" distinct
from "attribute present with value None".
"""

from __future__ import annotations

import base64
import json
import uuid
from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from version_trail.errors import DeserializationError, SerializationError

_TYPE_KEY = "__vt_type__"
_VALUE_KEY = "value"


def _tagged(type_name: str, value: Any) -> dict[str, Any]:
    return {_TYPE_KEY: type_name, _VALUE_KEY: value}


def _encode_value(value: Any) -> Any:
    """Convert a Python value into its JSON-compatible stored form.

    Raises:
        SerializationError: If the value (or a nested value) has no encoding.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        encoded: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise SerializationError(f"Attribute map keys must be strings, got {key!r}")
            if key == _TYPE_KEY:
                raise SerializationError(f"Reserved key {_TYPE_KEY!r} cannot be stored")
            encoded[key] = _encode_value(item)
        return encoded
    if isinstance(value, list):
        return [_encode_value(item) for item in value]
    if isinstance(value, tuple):
        return _tagged("tuple", [_encode_value(item) for item in value])
    if isinstance(value, (set, frozenset)):
        items = [_encode_value(item) for item in value]
        items.sort(key=lambda item: json.dumps(item, sort_keys=True))
        return _tagged("frozenset" if isinstance(value, frozenset) else "set", items)
    # datetime is a subclass of date, so it must be checked first
    if isinstance(value, datetime):
        return _tagged("datetime", value.isoformat())
    if isinstance(value, date):
        return _tagged("date", value.isoformat())
    if isinstance(value, time):
        return _tagged("time", value.isoformat())
    if isinstance(value, Decimal):
        return _tagged("decimal", str(value))
    if isinstance(value, uuid.UUID):
        return _tagged("uuid", str(value))
    if isinstance(value, bytes):
        return _tagged("bytes", base64.b64encode(value).decode("ascii"))
    raise SerializationError(f"Cannot serialize value of type {type(value).__name__}")


_DECODERS: dict[str, Callable[[Any], Any]] = {
    "tuple": tuple,
    "set": set,
    "frozenset": frozenset,
    "datetime": datetime.fromisoformat,
    "date": date.fromisoformat,
    "time": time.fromisoformat,
    "decimal": Decimal,
    "uuid": uuid.UUID,
    "bytes": lambda raw: base64.b64decode(raw.encode("ascii"), validate=True),
}


def _decode_object(obj: dict[str, Any]) -> Any:
    """json object_hook restoring tagged values."""
    if _TYPE_KEY not in obj:
        return obj
    type_name = obj[_TYPE_KEY]
    decoder = _DECODERS.get(type_name)
    if decoder is None or _VALUE_KEY not in obj:
        raise DeserializationError(f"Unknown tagged value in snapshot: {type_name!r}")
    try:
        return decoder(obj[_VALUE_KEY])
    except (TypeError, ValueError, InvalidOperation) as exc:
        raise DeserializationError(f"Malformed {type_name} value in snapshot: {exc}") from exc


def encode_attributes(attributes: Mapping[str, Any]) -> str:
    """Serialize an attribute map to its stored text form.

    Args:
        attributes: Attribute name to value.

    Returns:
        Compact JSON text with sorted keys.

    Raises:
        SerializationError: If any key is not a string or any value has no encoding.
    """
    return json.dumps(_encode_value(attributes), sort_keys=True, separators=(",", ":"))


def decode_attributes(payload: str | bytes | None) -> dict[str, Any]:
    """Deserialize a stored snapshot into an attribute map.

    An absent or empty payload is a legitimate "no snapshot" and yields an
    empty map. Anything else that fails to decode is an error.

    Args:
        payload: Stored snapshot text (or UTF-8 bytes), or None.

    Returns:
        The decoded attribute map.

    Raises:
        DeserializationError: If the payload is not valid snapshot JSON or is
            not a JSON object at the top level.
    """
    if payload is None or len(payload) == 0:
        return {}
    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        decoded = json.loads(text, object_hook=_decode_object)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DeserializationError(f"Failed to decode snapshot: {exc}") from exc
    if not isinstance(decoded, dict):
        raise DeserializationError(
            f"Snapshot must decode to an attribute map, got {type(decoded).__name__}"
        )
    return decoded
