"""Test fixtures for version-trail.

Provides:
- clock: A controllable clock starting at a fixed UTC instant
- repository: An empty InMemoryVersionRepository
- registry: A TrackingRegistry with the "Article" type registered
- store: A VersionStore wired to the above
- make_entity: Factory for FakeEntity instances implementing TrackedEntity
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from version_trail.adapters.memory import InMemoryVersionRepository
from version_trail.core.models import EntityRef
from version_trail.core.store import VersionStore
from version_trail.core.tracking import TrackingRegistry

T0 = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)


class FakeClock:
    """Clock returning a settable instant."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeEntity:
    """In-memory entity double with change tracking.

    ``updated_at`` lives in the attribute map, like a typical ORM row, and
    doubles as the last-modified marker.
    """

    def __init__(self, entity_type: str, entity_id: str, attributes: dict[str, Any]) -> None:
        self._ref = EntityRef(entity_type=entity_type, entity_id=entity_id)
        self.attributes = dict(attributes)
        self._pending: dict[str, Any] = {}

    @property
    def entity_ref(self) -> EntityRef:
        return self._ref

    @property
    def last_modified(self) -> datetime | None:
        return self.attributes.get("updated_at")

    def snapshot(self) -> dict[str, Any]:
        return dict(self.attributes)

    def pending_changes(self) -> dict[str, Any]:
        return dict(self._pending)

    def stage(self, at: datetime | None = None, **changes: Any) -> None:
        """Apply in-flight changes, remembering each attribute's prior value."""
        if at is not None:
            changes["updated_at"] = at
        for name, value in changes.items():
            if self.attributes.get(name) == value:
                continue
            self._pending.setdefault(name, self.attributes.get(name))
            self.attributes[name] = value

    def commit(self) -> None:
        self._pending.clear()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self.attributes[name]
        except KeyError:
            raise AttributeError(name) from None


@pytest.fixture()
def clock() -> FakeClock:
    """Return a clock fixed at T0 until advanced."""
    return FakeClock(T0)


@pytest.fixture()
def repository() -> InMemoryVersionRepository:
    """Return an empty in-memory repository."""
    return InMemoryVersionRepository()


@pytest.fixture()
def registry() -> TrackingRegistry:
    """Return a registry with Article tracked and updated_at ignored."""
    registry = TrackingRegistry()
    registry.register("Article", ignore=["updated_at"])
    return registry


@pytest.fixture()
def store(
    repository: InMemoryVersionRepository,
    registry: TrackingRegistry,
    clock: FakeClock,
) -> VersionStore:
    """Return a VersionStore over the in-memory repository and fake clock."""
    return VersionStore(repository, registry, clock=clock)


@pytest.fixture()
def make_entity(clock: FakeClock) -> Callable[..., FakeEntity]:
    """Return a factory for FakeEntity instances stamped with the clock's time."""

    def _make(
        entity_id: str = "1",
        entity_type: str = "Article",
        **attributes: Any,
    ) -> FakeEntity:
        attributes.setdefault("updated_at", clock())
        return FakeEntity(entity_type, entity_id, attributes)

    return _make
