"""Abstract interfaces (Protocol classes) for version-trail.

Defines the boundary contracts between the engine and its host using
Python's typing.Protocol. The engine depends on these protocols only, never
on a concrete persistence or entity implementation, so tests can use simple
doubles.

Protocols defined:
- TrackedEntity
- IVersionRepository
- ActorResolver
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from version_trail.core.models import EntityRef, VersionRecord


class TrackedEntity(Protocol):
    """Contract for an entity whose history is recorded."""

    @property
    def entity_ref(self) -> EntityRef:
        """Stable identity of the entity (type tag + primary key)."""
        ...

    @property
    def last_modified(self) -> datetime | None:
        """Last-modified marker of the live entity, or None if unknown."""
        ...

    def snapshot(self) -> dict[str, Any]:
        """Return the entity's current attribute map.

        During an in-flight update this is the new, not yet committed state.
        """
        ...

    def pending_changes(self) -> Mapping[str, Any]:
        """Return the attributes changed by the in-flight mutation.

        Returns:
            Mapping of changed attribute name to its value before the change.
            Empty when nothing changed.
        """
        ...


class IVersionRepository(Protocol):
    """Persistence contract for version records.

    Append-only: implementations expose no update or delete operation.
    """

    def append(self, record: VersionRecord) -> VersionRecord:
        """Durably write a record.

        Args:
            record: The record to commit. Its sequence_id is ignored.

        Returns:
            The committed record, carrying its assigned sequence_id.

        Raises:
            PersistenceError: If the write fails. No partial record remains.
        """
        ...

    def list_for(self, entity_ref: EntityRef) -> list[VersionRecord]:
        """Return every committed record for an entity.

        Returns:
            Records in ascending (created_at, sequence_id) order.

        Raises:
            PersistenceError: If the read fails.
        """
        ...

    def latest_for(self, entity_ref: EntityRef) -> VersionRecord | None:
        """Return the newest committed record for an entity, or None."""
        ...


class ActorResolver(Protocol):
    """Maps a stored actor token to a richer host identity."""

    def __call__(self, actor: str | None) -> Any: ...
