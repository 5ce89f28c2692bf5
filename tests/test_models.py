"""Tests for the snapshot model and its codec.

Covers: EntityRef and VersionRecord immutability and ordering, ABSENT, and
the tagged-JSON attribute map codec.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from version_trail.core.models import ABSENT, EntityRef, VersionEvent, VersionRecord, as_utc
from version_trail.core.serialization import decode_attributes, encode_attributes
from version_trail.errors import DeserializationError, SerializationError

REF = EntityRef(entity_type="Article", entity_id="1")


def make_record(**overrides: object) -> VersionRecord:
    """Build a minimal VersionRecord for tests."""
    fields: dict[str, object] = {
        "entity_ref": REF,
        "event": VersionEvent.UPDATE,
        "snapshot": encode_attributes({"title": "Draft"}),
        "created_at": datetime(2024, 1, 1, tzinfo=UTC),
        "sequence_id": 1,
    }
    fields.update(overrides)
    return VersionRecord(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


def test_entity_ref_is_hashable_and_immutable() -> None:
    same = EntityRef(entity_type="Article", entity_id="1")
    assert REF == same
    assert len({REF, same}) == 1
    with pytest.raises(PydanticValidationError):
        REF.entity_id = "2"  # type: ignore[misc]


def test_entity_ref_rejects_empty_type() -> None:
    with pytest.raises(PydanticValidationError):
        EntityRef(entity_type="", entity_id="1")


def test_version_record_is_immutable() -> None:
    record = make_record()
    with pytest.raises(PydanticValidationError):
        record.snapshot = None  # type: ignore[misc]


def test_version_record_rejects_unknown_event() -> None:
    with pytest.raises(PydanticValidationError):
        make_record(event="rename")


def test_version_record_normalizes_created_at_to_utc() -> None:
    naive = make_record(created_at=datetime(2024, 1, 1, 12, 0))
    assert naive.created_at == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    offset = make_record(created_at=datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))))
    assert offset.created_at.tzinfo == UTC
    assert offset.created_at.hour == 12


def test_sort_key_breaks_timestamp_ties_by_sequence() -> None:
    first = make_record(sequence_id=1)
    second = make_record(sequence_id=2)
    uncommitted = make_record(sequence_id=None)
    assert sorted([uncommitted, second, first], key=lambda r: r.sort_key) == [first, second, uncommitted]


def test_attributes_of_absent_snapshot_is_empty() -> None:
    assert make_record(snapshot=None).attributes() == {}


def test_as_utc_treats_naive_as_utc() -> None:
    assert as_utc(datetime(2024, 5, 1)) == datetime(2024, 5, 1, tzinfo=UTC)


def test_absent_is_a_falsy_singleton() -> None:
    assert type(ABSENT)() is ABSENT
    assert not ABSENT
    assert ABSENT is not None
    assert repr(ABSENT) == "ABSENT"


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def test_codec_round_trips_tagged_types() -> None:
    attributes = {
        "title": "Hello",
        "views": 3,
        "ratio": 0.5,
        "published": True,
        "deleted_at": None,
        "tags": ["a", "b"],
        "settings": {"theme": {"dark": True}},
        "created_at": datetime(2024, 1, 1, 9, 30, tzinfo=UTC),
        "birthday": date(1990, 4, 2),
        "alarm": time(7, 15),
        "price": Decimal("19.99"),
        "uid": uuid.UUID("00000000-0000-0000-0000-000000000001"),
        "blob": b"\x00\x01binary",
        "point": (1, 2),
        "labels": {"x", "y"},
        "frozen": frozenset({1}),
    }
    assert decode_attributes(encode_attributes(attributes)) == attributes


def test_codec_keeps_absent_and_null_distinct() -> None:
    decoded = decode_attributes(encode_attributes({"subtitle": None}))
    assert "subtitle" in decoded
    assert decoded["subtitle"] is None
    assert "body" not in decoded


def test_encoding_is_independent_of_key_order() -> None:
    assert encode_attributes({"a": 1, "b": {"y": 2, "x": 1}}) == encode_attributes({"b": {"x": 1, "y": 2}, "a": 1})


@pytest.mark.parametrize("payload", [None, "", b""])
def test_decode_of_empty_payload_is_empty_map(payload: str | bytes | None) -> None:
    assert decode_attributes(payload) == {}


def test_decode_accepts_utf8_bytes() -> None:
    assert decode_attributes('{"title":"café"}'.encode()) == {"title": "café"}


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "[1, 2, 3]",
        '"just a string"',
        '{"x": {"__vt_type__": "martian", "value": 1}}',
        '{"x": {"__vt_type__": "datetime", "value": "yesterday"}}',
        b"\xff\xfe",
    ],
)
def test_decode_rejects_malformed_payloads(payload: str | bytes) -> None:
    with pytest.raises(DeserializationError):
        decode_attributes(payload)


def test_encode_rejects_unsupported_values() -> None:
    with pytest.raises(SerializationError):
        encode_attributes({"callback": object()})


def test_encode_rejects_non_string_keys() -> None:
    with pytest.raises(SerializationError):
        encode_attributes({"nested": {1: "one"}})


def test_encode_rejects_reserved_key() -> None:
    with pytest.raises(SerializationError):
        encode_attributes({"__vt_type__": "datetime"})
