"""Audit trail construction from an entity's version records.

The trail is built by walking the records newest first, together with a
synthetic record for the live state, and diffing each record against its
predecessor. The predecessor's snapshot is the "before" side and its event,
actor and timestamp describe the transition.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from typing import Any

from version_trail.core.diff import diff
from version_trail.core.interfaces import TrackedEntity
from version_trail.core.models import AuditEntry, VersionEvent, VersionRecord
from version_trail.core.serialization import encode_attributes
from version_trail.core.store import VersionStore


def _identity(actor: str | None) -> Any:
    return actor


class AuditTrailBuilder:
    """Produces human-facing change summaries for a tracked entity.

    Args:
        store: The version store whose records are read.
        actor_resolver: Maps a stored actor token to a host identity.
            Identity function when omitted.
        default_ignored: Attribute names left out of diffs when the caller
            does not pass its own set.
    """

    def __init__(
        self,
        store: VersionStore,
        actor_resolver: Callable[[str | None], Any] | None = None,
        default_ignored: Collection[str] = ("updated_at",),
    ) -> None:
        self._store = store
        self._actor_resolver = actor_resolver or _identity
        self._default_ignored = frozenset(default_ignored)

    def audit_trail(
        self,
        entity: TrackedEntity,
        ignored_extra: Collection[str] | None = None,
    ) -> list[AuditEntry]:
        """Return one entry per recorded transition, newest first.

        Args:
            entity: The live entity.
            ignored_extra: Attribute names to leave out of the diffs. Defaults
                to the builder's default ignore set.

        Returns:
            Audit entries ordered newest first. Empty if the entity has no
            committed records.

        Raises:
            DeserializationError: If a stored snapshot is malformed.
        """
        ignored = self._default_ignored if ignored_extra is None else frozenset(ignored_extra)
        versions = self._versions_including_current_desc(entity)

        trail: list[AuditEntry] = []
        for newer, older in zip(versions, versions[1:]):
            trail.append(
                AuditEntry(
                    event=older.event,
                    changed_by=self._actor_resolver(older.actor),
                    changed_at=older.created_at,
                    changes=tuple(diff(older.attributes(), newer.attributes(), ignored)),
                )
            )
        return trail

    def _versions_including_current_desc(self, entity: TrackedEntity) -> list[VersionRecord]:
        """All committed records plus a pseudo-record for the live state, newest first."""
        versions = list(self._store.versions_for(entity))
        if not versions:
            return []
        current = VersionRecord(
            entity_ref=entity.entity_ref,
            event=VersionEvent.UPDATE,
            snapshot=encode_attributes(entity.snapshot()),
            created_at=entity.last_modified or versions[-1].created_at,
        )
        versions.append(current)
        versions.reverse()
        return versions
