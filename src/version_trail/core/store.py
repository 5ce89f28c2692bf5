"""Version store: capture of version records on entity lifecycle events.

The host's lifecycle trigger calls one record_* method per event:
- record_create after the entity is created (snapshot = new state)
- record_update before the new state is durably applied (snapshot = pre-image)
- record_destroy when the entity is removed (snapshot = state before removal)

Records are appended through an IVersionRepository and never modified
afterwards. All three operations are gated by the store's enable flag and the
entity type's tracking flag.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from version_trail.core.actor import current_actor
from version_trail.core.diff import is_change_relevant
from version_trail.core.interfaces import IVersionRepository, TrackedEntity
from version_trail.core.models import EntityRef, VersionEvent, VersionRecord, as_utc
from version_trail.core.serialization import encode_attributes
from version_trail.core.tracking import TrackingRegistry
from version_trail.observability import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_pre_image(current: Mapping[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
    """Roll the changed attributes of a state back to their prior values.

    Args:
        current: The in-flight (new) attribute map.
        changes: Changed attribute name to value before the change.

    Returns:
        The attribute map as it was before the mutation.
    """
    pre_image = dict(current)
    pre_image.update(changes)
    return pre_image


class VersionHistory:
    """Lazy, restartable view over an entity's committed version records.

    Every iteration re-reads the repository, so records committed after the
    view was created are included. Iteration order is ascending
    (created_at, sequence_id).
    """

    def __init__(self, repository: IVersionRepository, entity_ref: EntityRef) -> None:
        self._repository = repository
        self._entity_ref = entity_ref

    @property
    def entity_ref(self) -> EntityRef:
        return self._entity_ref

    def __iter__(self) -> Iterator[VersionRecord]:
        return iter(self._repository.list_for(self._entity_ref))

    def __len__(self) -> int:
        return len(self._repository.list_for(self._entity_ref))

    def __bool__(self) -> bool:
        return self._repository.latest_for(self._entity_ref) is not None

    def first(self) -> VersionRecord | None:
        """Return the oldest record, or None for an empty history."""
        return next(iter(self), None)

    def last(self) -> VersionRecord | None:
        """Return the newest record, or None for an empty history."""
        return self._repository.latest_for(self._entity_ref)

    def first_after(self, timestamp: datetime) -> VersionRecord | None:
        """Return the earliest record created strictly after a timestamp."""
        timestamp = as_utc(timestamp)
        return next((record for record in self if record.created_at > timestamp), None)


class VersionStore:
    """Builds and commits version records for tracked entities.

    Args:
        repository: Persistence collaborator receiving the records.
        registry: Per-entity-type configuration. A fresh registry (all
            defaults) is used when omitted.
        enabled: Initial state of the store-wide enable flag.
        clock: Returns the current time; defaults to datetime.now(UTC).
        actor_source: Supplies the actor when a call does not pass one.
    """

    def __init__(
        self,
        repository: IVersionRepository,
        registry: TrackingRegistry | None = None,
        *,
        enabled: bool = True,
        clock: Callable[[], datetime] | None = None,
        actor_source: Callable[[], str | None] = current_actor,
    ) -> None:
        self._repository = repository
        self._registry = registry if registry is not None else TrackingRegistry()
        self._enabled = enabled
        self._clock = clock or _utcnow
        self._actor_source = actor_source

    @property
    def repository(self) -> IVersionRepository:
        return self._repository

    @property
    def registry(self) -> TrackingRegistry:
        return self._registry

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    @contextmanager
    def disabled(self) -> Iterator[None]:
        """Suspend all history capture within a block, then restore the flag."""
        previous = self._enabled
        self._enabled = False
        try:
            yield
        finally:
            self._enabled = previous

    def record_create(
        self,
        entity: TrackedEntity,
        actor: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> VersionRecord | None:
        """Commit a create record holding the entity's full current state.

        Returns:
            The committed record, or None when capture is switched off.

        Raises:
            PersistenceError: If the repository write fails.
            SerializationError: If the state cannot be encoded.
        """
        if not self._should_record(entity.entity_ref):
            return None
        return self._commit(entity, VersionEvent.CREATE, entity.snapshot(), actor, metadata)

    def record_update(
        self,
        entity: TrackedEntity,
        pre_image: Mapping[str, Any] | None = None,
        actor: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> VersionRecord | None:
        """Commit an update record holding the state before the change.

        Must be called before the host durably applies the new values. The
        record is only written when at least one changed attribute lies
        outside the entity type's ignore set.

        Args:
            entity: The entity being updated.
            pre_image: State before the change. Built from the entity's
                current state and pending_changes() when omitted.
            actor: Who made the change; defaults to the current actor.
            metadata: Extra metadata overlaid on the configured metadata.

        Returns:
            The committed record, or None if nothing was recorded.

        Raises:
            PersistenceError: If the repository write fails.
            SerializationError: If the pre-image cannot be encoded.
        """
        entity_ref = entity.entity_ref
        if not self._should_record(entity_ref):
            return None

        changes = entity.pending_changes()
        config = self._registry.get(entity_ref.entity_type)
        if not is_change_relevant(changes.keys(), config.ignore):
            logger.debug(
                "Skipped update record: no relevant attribute changed",
                extra={"entity": str(entity_ref), "changed": sorted(changes)},
            )
            return None

        if pre_image is None:
            pre_image = build_pre_image(entity.snapshot(), changes)
        return self._commit(entity, VersionEvent.UPDATE, pre_image, actor, metadata)

    def record_destroy(
        self,
        entity: TrackedEntity,
        actor: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> VersionRecord | None:
        """Commit a destroy record holding the entity's state before removal.

        Returns:
            The committed record, or None when capture is switched off.

        Raises:
            PersistenceError: If the repository write fails.
            SerializationError: If the state cannot be encoded.
        """
        if not self._should_record(entity.entity_ref):
            return None
        return self._commit(entity, VersionEvent.DESTROY, entity.snapshot(), actor, metadata)

    def versions_for(self, entity: TrackedEntity | EntityRef) -> VersionHistory:
        """Return the committed records of an entity, oldest first."""
        entity_ref = entity if isinstance(entity, EntityRef) else entity.entity_ref
        return VersionHistory(self._repository, entity_ref)

    def _should_record(self, entity_ref: EntityRef) -> bool:
        if not self._enabled:
            logger.debug("History capture disabled", extra={"entity": str(entity_ref)})
            return False
        if not self._registry.is_tracking(entity_ref.entity_type):
            logger.debug("Tracking off for entity type", extra={"entity": str(entity_ref)})
            return False
        return True

    def _commit(
        self,
        entity: TrackedEntity,
        event: VersionEvent,
        attributes: Mapping[str, Any],
        actor: str | None,
        metadata: Mapping[str, Any] | None,
    ) -> VersionRecord:
        entity_ref = entity.entity_ref
        config = self._registry.get(entity_ref.entity_type)

        merged_metadata = config.resolve_metadata(entity)
        merged_metadata.update(metadata or {})

        record = VersionRecord(
            entity_ref=entity_ref,
            event=event,
            snapshot=encode_attributes(attributes),
            actor=actor if actor is not None else self._actor_source(),
            metadata=merged_metadata,
            created_at=self._timestamp_for(entity_ref),
        )
        committed = self._repository.append(record)
        logger.info(
            "Committed version record",
            extra={
                "entity": str(entity_ref),
                "event": event.value,
                "sequence_id": committed.sequence_id,
                "actor": committed.actor,
            },
        )
        return committed

    def _timestamp_for(self, entity_ref: EntityRef) -> datetime:
        """Current time, never earlier than the entity's newest record."""
        now = as_utc(self._clock())
        latest = self._repository.latest_for(entity_ref)
        if latest is not None and latest.created_at > now:
            return latest.created_at
        return now
