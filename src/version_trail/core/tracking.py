"""Per-entity-type tracking configuration.

Each tracked entity type registers once with:
- ignore: attribute names whose changes alone never produce an update record
- meta: extra values stored on every record, each either a plain value or a
  callable receiving the entity instance, evaluated when the record is built
- factory: optional callable turning a reified attribute map back into a
  host-shaped object

Types that were never registered get the defaults: tracked, empty ignore set,
no metadata.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any

from version_trail.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrackingConfig:
    """Configuration for one tracked entity type.

    Attributes:
        entity_type: Type tag the configuration applies to.
        ignore: Attribute names ignored by the change-relevance policy.
        meta: Metadata key to value or to callable(entity) -> value.
        active: Per-type tracking flag.
        factory: Optional callable(attributes) -> host object used by
            Reifier.reify_as_model.
    """

    entity_type: str
    ignore: frozenset[str] = frozenset()
    meta: Mapping[str, Any] = field(default_factory=dict)
    active: bool = True
    factory: Callable[[dict[str, Any]], Any] | None = None

    def resolve_metadata(self, entity: Any) -> dict[str, Any]:
        """Evaluate the configured metadata against an entity instance.

        Args:
            entity: The entity the record documents; passed to callables.

        Returns:
            Metadata key to resolved value.
        """
        return {key: value(entity) if callable(value) else value for key, value in self.meta.items()}


class TrackingRegistry:
    """Registry of TrackingConfig by entity type.

    Registration normally happens once at startup. Toggling a type's tracking
    flag afterwards is expected to be rare and externally synchronized.
    """

    def __init__(self) -> None:
        self._configs: dict[str, TrackingConfig] = {}

    def register(
        self,
        entity_type: str,
        *,
        ignore: Collection[str] = (),
        meta: Mapping[str, Any] | None = None,
        factory: Callable[[dict[str, Any]], Any] | None = None,
    ) -> TrackingConfig:
        """Register (or replace) the configuration for an entity type.

        Args:
            entity_type: Type tag, matching EntityRef.entity_type.
            ignore: Attribute names whose changes alone are not recorded.
            meta: Extra metadata, values or callables taking the entity.
            factory: Optional callable building a host object from attributes.

        Returns:
            The stored TrackingConfig.
        """
        config = TrackingConfig(
            entity_type=entity_type,
            ignore=frozenset(str(name) for name in ignore),
            meta=dict(meta or {}),
            factory=factory,
        )
        self._configs[entity_type] = config
        logger.debug(
            "Registered tracked entity type",
            extra={"entity_type": entity_type, "ignore": sorted(config.ignore), "meta_keys": sorted(config.meta)},
        )
        return config

    def get(self, entity_type: str) -> TrackingConfig:
        """Return the configuration for a type, or the defaults if unregistered."""
        return self._configs.get(entity_type) or TrackingConfig(entity_type=entity_type)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._configs

    def is_tracking(self, entity_type: str) -> bool:
        return self.get(entity_type).active

    def tracking_on(self, entity_type: str) -> None:
        """Resume history capture for an entity type."""
        self._configs[entity_type] = replace(self.get(entity_type), active=True)

    def tracking_off(self, entity_type: str) -> None:
        """Suspend history capture for an entity type."""
        self._configs[entity_type] = replace(self.get(entity_type), active=False)

    @contextmanager
    def tracking_suspended(self, entity_type: str) -> Iterator[None]:
        """Suspend capture for an entity type within a block, then restore it."""
        was_active = self.is_tracking(entity_type)
        self.tracking_off(entity_type)
        try:
            yield
        finally:
            if was_active:
                self.tracking_on(entity_type)
