"""Reconstruction of historical entity state.

Because update and destroy records hold pre-images, the state of an entity at
time T is the snapshot of the first record committed after T: that record
captured the state which was valid up to its own instant. If the live entity
has not been modified since T, the live entity is the answer and no history
lookup is needed.

Reified objects are detached, read-only copies. They are never mistaken for
live entities: they carry ``reified = True`` and refuse mutation and saving.
"""

from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import Any

from version_trail.core.interfaces import TrackedEntity
from version_trail.core.models import EntityRef, VersionEvent, VersionRecord, as_utc
from version_trail.core.store import VersionStore
from version_trail.errors import NotFoundError, ReifiedEntityError
from version_trail.observability import get_logger

logger = get_logger(__name__)

_REIFIED_FLAG = "_version_trail_reified"


def mark_reified(obj: Any) -> Any:
    """Flag a host object as a historical reconstruction and return it."""
    setattr(obj, _REIFIED_FLAG, True)
    return obj


def is_reified(obj: Any) -> bool:
    """Return True if an object is a historical reconstruction."""
    return isinstance(obj, ReifiedEntity) or bool(getattr(obj, _REIFIED_FLAG, False))


def reified_version(reified: ReifiedEntity) -> VersionRecord:
    """Return the record a reified entity was built from.

    Unlike ``reified.version`` this is never shadowed by a stored attribute
    of the same name.
    """
    return object.__getattribute__(reified, "_version")


class ReifiedEntity:
    """Read-only, detached reconstruction of an entity from a version record.

    Attributes are readable by name (``entity.title``) or through
    ``attributes``. A stored attribute wins over a member of the same name,
    so ``entity.version`` is the stored ``version`` column when there is one;
    use reified_version() to reach the record itself. Any attempt to set an
    attribute or to save raises ReifiedEntityError.
    """

    __slots__ = ("_entity_ref", "_version", "_attributes")

    reified = True

    def __init__(self, entity_ref: EntityRef, version: VersionRecord, attributes: dict[str, Any]) -> None:
        object.__setattr__(self, "_entity_ref", entity_ref)
        object.__setattr__(self, "_version", version)
        object.__setattr__(self, "_attributes", MappingProxyType(dict(attributes)))

    @property
    def entity_ref(self) -> EntityRef:
        return self._entity_ref

    @property
    def version(self) -> VersionRecord:
        """The record this reconstruction was built from."""
        return self._version

    @property
    def attributes(self) -> dict[str, Any]:
        """A copy of the reconstructed attribute map."""
        return dict(self._attributes)

    def snapshot(self) -> dict[str, Any]:
        return dict(self._attributes)

    def __getattribute__(self, name: str) -> Any:
        if not name.startswith("_"):
            attributes = object.__getattribute__(self, "_attributes")
            if name in attributes:
                return attributes[name]
        return object.__getattribute__(self, name)

    def __getattr__(self, name: str) -> Any:
        raise AttributeError(f"{type(self).__name__} has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        raise ReifiedEntityError(f"Cannot modify reified {self._entity_ref}: it is a historical copy")

    def __delattr__(self, name: str) -> None:
        raise ReifiedEntityError(f"Cannot modify reified {self._entity_ref}: it is a historical copy")

    def save(self) -> None:
        raise ReifiedEntityError(f"Cannot save reified {self._entity_ref}: it is a historical copy")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReifiedEntity):
            return NotImplemented
        return self._entity_ref == other._entity_ref and dict(self._attributes) == dict(other._attributes)

    def __repr__(self) -> str:
        return f"<ReifiedEntity {self._entity_ref} from {self._version.event.value}@{self._version.created_at.isoformat()}>"


class Reifier:
    """Reconstructs entity state at a past moment or from a given record.

    Args:
        store: The version store whose records are read.
    """

    def __init__(self, store: VersionStore) -> None:
        self._store = store

    def state_at(self, entity: TrackedEntity, timestamp: datetime) -> TrackedEntity | ReifiedEntity:
        """Return the entity as it was at a timestamp.

        Args:
            entity: The live entity.
            timestamp: Point in time to reconstruct.

        Returns:
            The live entity itself if it has not been modified since the
            timestamp, otherwise a ReifiedEntity built from the first record
            committed after the timestamp.

        Raises:
            NotFoundError: If no record covers the timestamp. Any timestamp
                before the create record's created_at is not found, even when
                the host's own timestamps place the entity earlier.
            DeserializationError: If the covering snapshot is malformed.
        """
        timestamp = as_utc(timestamp)
        last_modified = entity.last_modified
        if last_modified is not None and as_utc(last_modified) <= timestamp:
            return entity

        entity_ref = entity.entity_ref
        version = self._store.versions_for(entity_ref).first_after(timestamp)
        if version is None or version.event is VersionEvent.CREATE:
            logger.debug(
                "No version covers timestamp",
                extra={"entity": str(entity_ref), "timestamp": timestamp.isoformat()},
            )
            raise NotFoundError(resource="EntityState", resource_id=f"{entity_ref}@{timestamp.isoformat()}")
        return self.reify(version)

    def reify(self, version: VersionRecord) -> ReifiedEntity:
        """Build a detached, read-only entity from a version record.

        Raises:
            DeserializationError: If the snapshot is malformed.
        """
        return ReifiedEntity(version.entity_ref, version, version.attributes())

    def reify_as_model(self, version: VersionRecord) -> Any:
        """Build a host-shaped object through the entity type's factory.

        Falls back to reify() when the type has no factory configured. The
        returned object is flagged so is_reified() reports True.
        """
        config = self._store.registry.get(version.entity_ref.entity_type)
        if config.factory is None:
            return self.reify(version)
        return mark_reified(config.factory(version.attributes()))
