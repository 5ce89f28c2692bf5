"""VersionTrail facade.

Wires the version store, reifier and audit trail builder around one
repository and one tracking registry, using Settings for the global enable
flag and audit defaults. Hosts that want finer control can use the
components directly.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from version_trail.adapters.repositories import SqlAlchemyVersionRepository
from version_trail.core.audit import AuditTrailBuilder
from version_trail.core.interfaces import IVersionRepository, TrackedEntity
from version_trail.core.models import AuditEntry, EntityRef, VersionRecord
from version_trail.core.reifier import ReifiedEntity, Reifier
from version_trail.core.store import VersionHistory, VersionStore
from version_trail.core.tracking import TrackingConfig, TrackingRegistry
from version_trail.observability import configure_logging
from version_trail.settings import Settings


class VersionTrail:
    """Version history engine for tracked entities.

    Args:
        repository: Persistence collaborator for version records.
        settings: Process settings; read from the environment when omitted.
        registry: Per-entity-type configuration; a fresh one when omitted.
        actor_resolver: Maps stored actor tokens to host identities in
            audit trails.
        clock: Current-time source for record timestamps.
    """

    def __init__(
        self,
        repository: IVersionRepository,
        settings: Settings | None = None,
        registry: TrackingRegistry | None = None,
        actor_resolver: Callable[[str | None], Any] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = VersionStore(repository, registry, enabled=self.settings.enabled, clock=clock)
        self.reifier = Reifier(self.store)
        self.auditor = AuditTrailBuilder(
            self.store,
            actor_resolver=actor_resolver,
            default_ignored=self.settings.audit_ignored_attributes,
        )

    @classmethod
    def for_session(
        cls,
        session: Session,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> VersionTrail:
        """Build an engine storing versions through a SQLAlchemy session.

        Applies the logging settings, so hosts can call this once at startup.
        Extra keyword arguments are passed to the constructor.
        """
        settings = settings or Settings()
        configure_logging(level=settings.log_level, json_output=settings.log_json)
        return cls(SqlAlchemyVersionRepository(session), settings=settings, **kwargs)

    @property
    def registry(self) -> TrackingRegistry:
        return self.store.registry

    def register(
        self,
        entity_type: str,
        *,
        ignore: Collection[str] = (),
        meta: Mapping[str, Any] | None = None,
        factory: Callable[[dict[str, Any]], Any] | None = None,
    ) -> TrackingConfig:
        """Register an entity type for tracking. See TrackingRegistry.register."""
        return self.registry.register(entity_type, ignore=ignore, meta=meta, factory=factory)

    def record_create(
        self, entity: TrackedEntity, actor: str | None = None, metadata: Mapping[str, Any] | None = None
    ) -> VersionRecord | None:
        return self.store.record_create(entity, actor=actor, metadata=metadata)

    def record_update(
        self,
        entity: TrackedEntity,
        pre_image: Mapping[str, Any] | None = None,
        actor: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> VersionRecord | None:
        return self.store.record_update(entity, pre_image=pre_image, actor=actor, metadata=metadata)

    def record_destroy(
        self, entity: TrackedEntity, actor: str | None = None, metadata: Mapping[str, Any] | None = None
    ) -> VersionRecord | None:
        return self.store.record_destroy(entity, actor=actor, metadata=metadata)

    def versions_for(self, entity: TrackedEntity | EntityRef) -> VersionHistory:
        return self.store.versions_for(entity)

    def state_at(self, entity: TrackedEntity, timestamp: datetime) -> TrackedEntity | ReifiedEntity:
        return self.reifier.state_at(entity, timestamp)

    def reify(self, version: VersionRecord) -> ReifiedEntity:
        return self.reifier.reify(version)

    def audit_trail(self, entity: TrackedEntity, ignored_extra: Collection[str] | None = None) -> list[AuditEntry]:
        return self.auditor.audit_trail(entity, ignored_extra=ignored_extra)
