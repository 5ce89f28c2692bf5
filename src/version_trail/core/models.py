"""Value types for version history.

VersionRecord is the immutable unit of history: one lifecycle event of one
entity, carrying the encoded attribute snapshot that event captured. For
``create`` events the snapshot is the state after creation; for ``update``
and ``destroy`` events it is the state immediately before the change.

AttributeChange and AuditEntry are the human-facing output of the audit
trail builder.
"""

from __future__ import annotations

import enum
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from version_trail.core.serialization import decode_attributes


def as_utc(value: datetime) -> datetime:
    """Return a timezone-aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class VersionEvent(str, enum.Enum):
    """Lifecycle event that produced a version record."""

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


class EntityRef(BaseModel):
    """Identifies the tracked entity a version record belongs to.

    Attributes:
        entity_type: Type tag of the entity, e.g. the model class name.
        entity_id: Primary key of the entity, as a string.
    """

    model_config = ConfigDict(frozen=True)

    entity_type: str = Field(..., min_length=1, description="Type tag of the tracked entity")
    entity_id: str = Field(..., description="Primary key of the tracked entity")

    def __str__(self) -> str:
        return f"{self.entity_type}#{self.entity_id}"


class VersionRecord(BaseModel):
    """Immutable record of one lifecycle event of a tracked entity.

    Attributes:
        entity_ref: The entity this record documents.
        event: create, update or destroy.
        snapshot: Encoded attribute map (see core.serialization). Post-image
            for create, pre-image for update and destroy. May be None.
        actor: Opaque identifier of who caused the change ("whodunnit").
        metadata: Resolved extra values configured for the entity type.
        created_at: When the record was committed (timezone-aware UTC).
        sequence_id: Tie-breaker assigned by the repository on commit. None
            for records that have not been committed.
    """

    model_config = ConfigDict(frozen=True)

    entity_ref: EntityRef
    event: VersionEvent
    snapshot: str | None = Field(default=None, description="Encoded attribute map")
    actor: str | None = Field(default=None, description="Who caused the change")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    sequence_id: int | None = Field(default=None, description="Per-write ordering tie-breaker")

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Ordering key: ascending (created_at, sequence_id).

        Uncommitted records sort after committed ones sharing their timestamp.
        """
        return (self.created_at, self.sequence_id if self.sequence_id is not None else sys.maxsize)

    def attributes(self) -> dict[str, Any]:
        """Decode the snapshot into a fresh attribute map.

        Raises:
            DeserializationError: If the stored snapshot is malformed.
        """
        return decode_attributes(self.snapshot)


class _Absent:
    """Marker for an attribute missing from one side of a diff."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


@dataclass(frozen=True)
class AttributeChange:
    """One attribute's value before and after a change.

    ``before`` or ``after`` is ABSENT when the attribute did not exist on
    that side, which is distinct from the attribute holding None.
    """

    attribute: str
    before: Any
    after: Any

    @property
    def added(self) -> bool:
        return self.before is ABSENT

    @property
    def removed(self) -> bool:
        return self.after is ABSENT


@dataclass(frozen=True)
class AuditEntry:
    """Human-facing summary of one transition in an entity's history."""

    event: VersionEvent
    changed_by: Any
    changed_at: datetime
    changes: tuple[AttributeChange, ...]
