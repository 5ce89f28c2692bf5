"""TrackedEntity adapter for SQLAlchemy-mapped instances.

Reads identity, column values and in-flight changes straight from the ORM's
instance state, so hosts can pass any mapped object to the version store:

    store.record_update(OrmEntity(widget))
    session.commit()

record_update must run before the session flushes the change, because the
attribute history that yields the pre-image is reset by the flush.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import inspect, select

from version_trail.core.models import EntityRef


class OrmEntity:
    """Wraps a mapped instance to satisfy the TrackedEntity protocol.

    Args:
        instance: A SQLAlchemy-mapped object.
        updated_at_attribute: Name of the attribute holding the last-modified
            timestamp. Missing attributes yield last_modified = None.
        entity_type: Type tag override; defaults to the mapped class name.
    """

    def __init__(
        self,
        instance: Any,
        updated_at_attribute: str = "updated_at",
        entity_type: str | None = None,
    ) -> None:
        self._instance = instance
        self._state = inspect(instance)
        self._updated_at_attribute = updated_at_attribute
        self._entity_type = entity_type or type(instance).__name__

    @property
    def instance(self) -> Any:
        return self._instance

    @property
    def entity_ref(self) -> EntityRef:
        """Identity from the instance's primary key.

        Raises:
            ValueError: If the primary key is not assigned yet (call
                record_create after the insert has been flushed).
        """
        identity = self._state.identity or self._state.mapper.primary_key_from_instance(self._instance)
        if not identity or any(value is None for value in identity):
            raise ValueError(f"{self._entity_type} instance has no primary key yet; flush before recording it")
        return EntityRef(entity_type=self._entity_type, entity_id=":".join(str(value) for value in identity))

    @property
    def last_modified(self) -> datetime | None:
        return getattr(self._instance, self._updated_at_attribute, None)

    def snapshot(self) -> dict[str, Any]:
        """Current values of all mapped column attributes."""
        return {attr.key: getattr(self._instance, attr.key) for attr in self._state.mapper.column_attrs}

    def pending_changes(self) -> dict[str, Any]:
        """Column attributes modified since the last flush, with their prior values.

        Prior values the session no longer holds (expired on commit, for
        example) are read back from the database without flushing the
        in-flight change. Assignments that leave a value unchanged are not
        reported.

        Raises:
            ValueError: If a prior value must be loaded but the instance is
                detached from its session.
        """
        changes: dict[str, Any] = {}
        unloaded = []
        for attr in self._state.mapper.column_attrs:
            history = self._state.attrs[attr.key].history
            if not history.has_changes():
                continue
            if history.deleted:
                changes[attr.key] = history.deleted[0]
            elif self._state.key is None:
                # Not inserted yet: there is no prior row
                changes[attr.key] = None
            else:
                unloaded.append(attr)

        if unloaded:
            for attr, prior in zip(unloaded, self._load_committed(unloaded)):
                if prior != getattr(self._instance, attr.key):
                    changes[attr.key] = prior
        return changes

    def _load_committed(self, attrs: list[Any]) -> tuple[Any, ...]:
        """Read the stored values of column attributes from the database."""
        session = self._state.session
        if session is None:
            raise ValueError(f"{self._entity_type} instance is detached; its prior values cannot be loaded")
        mapper = self._state.mapper
        stmt = select(*(attr.columns[0] for attr in attrs)).where(
            *(column == value for column, value in zip(mapper.primary_key, self._state.key[1]))
        )
        with session.no_autoflush:
            return tuple(session.execute(stmt).one())

    def __getattr__(self, name: str) -> Any:
        # Lets metadata callables read model attributes off the wrapper
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._instance, name)
