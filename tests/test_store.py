"""Tests for the VersionStore.

Covers: snapshot semantics of create/update/destroy, the change-relevance
gate, enable and tracking flags, metadata merge, actor defaulting,
timestamp monotonicity and the lazy versions_for view.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from version_trail.core.actor import actor_context, current_actor, set_actor
from version_trail.core.models import VersionEvent
from version_trail.core.store import VersionStore, build_pre_image
from version_trail.core.tracking import TrackingRegistry
from version_trail.errors import PersistenceError, SerializationError

from .conftest import T0


# ---------------------------------------------------------------------------
# Snapshot semantics
# ---------------------------------------------------------------------------


def test_record_create_stores_post_image(store, make_entity) -> None:
    entity = make_entity(name="A")

    record = store.record_create(entity)

    assert record is not None
    assert record.event is VersionEvent.CREATE
    assert record.attributes() == {"name": "A", "updated_at": T0}
    assert record.created_at == T0
    assert record.sequence_id is not None


def test_record_update_stores_pre_image(store, make_entity, clock) -> None:
    entity = make_entity(name="A")
    store.record_create(entity)
    entity.stage(at=clock.advance(hours=1), name="B")

    record = store.record_update(entity)

    assert record is not None
    assert record.event is VersionEvent.UPDATE
    assert record.attributes() == {"name": "A", "updated_at": T0}
    assert record.created_at == T0 + timedelta(hours=1)


def test_record_update_uses_explicit_pre_image(store, make_entity) -> None:
    entity = make_entity(name="B")
    entity.stage(name="C")

    record = store.record_update(entity, pre_image={"name": "explicit"})

    assert record is not None
    assert record.attributes() == {"name": "explicit"}


def test_record_destroy_stores_state_before_removal(store, make_entity) -> None:
    entity = make_entity(x=1)

    record = store.record_destroy(entity)

    assert record is not None
    assert record.event is VersionEvent.DESTROY
    assert record.attributes() == {"x": 1, "updated_at": T0}


def test_build_pre_image_rolls_back_changed_attributes() -> None:
    assert build_pre_image({"a": 2, "b": 1}, {"a": 1}) == {"a": 1, "b": 1}


# ---------------------------------------------------------------------------
# Change relevance
# ---------------------------------------------------------------------------


def test_update_touching_only_ignored_attributes_is_not_recorded(store, make_entity, clock) -> None:
    entity = make_entity(name="A")
    store.record_create(entity)
    entity.stage(at=clock.advance(minutes=5))

    assert store.record_update(entity) is None
    assert len(store.versions_for(entity)) == 1


def test_update_without_changes_is_not_recorded(store, make_entity) -> None:
    entity = make_entity(name="A")
    assert store.record_update(entity) is None
    assert len(store.versions_for(entity)) == 0


def test_unregistered_type_has_empty_ignore_set(repository, clock, make_entity) -> None:
    store = VersionStore(repository, TrackingRegistry(), clock=clock)
    entity = make_entity(entity_type="Comment", body="hi")
    entity.stage(at=clock.advance(minutes=1))

    assert store.record_update(entity) is not None


# ---------------------------------------------------------------------------
# Gating flags
# ---------------------------------------------------------------------------


def test_disabled_store_records_nothing(store, make_entity) -> None:
    entity = make_entity(name="A")
    store.disable()
    entity.stage(name="B")

    assert store.record_create(entity) is None
    assert store.record_update(entity) is None
    assert store.record_destroy(entity) is None
    assert len(store.versions_for(entity)) == 0

    store.enable()
    assert store.record_create(entity) is not None


def test_disabled_context_restores_flag(store, make_entity) -> None:
    entity = make_entity(name="A")
    with store.disabled():
        assert store.record_create(entity) is None
    assert store.enabled
    assert store.record_create(entity) is not None


def test_store_constructed_disabled(repository, registry, make_entity) -> None:
    store = VersionStore(repository, registry, enabled=False)
    assert store.record_create(make_entity()) is None


def test_tracking_off_for_type_records_nothing(store, registry, make_entity) -> None:
    article = make_entity(name="A")
    comment = make_entity(entity_type="Comment", body="hi")
    registry.tracking_off("Article")

    assert store.record_create(article) is None
    assert store.record_create(comment) is not None

    registry.tracking_on("Article")
    assert store.record_create(article) is not None


def test_tracking_suspended_keeps_configuration(store, registry, make_entity) -> None:
    with registry.tracking_suspended("Article"):
        assert store.record_create(make_entity()) is None
    assert registry.is_tracking("Article")
    assert registry.get("Article").ignore == frozenset({"updated_at"})


# ---------------------------------------------------------------------------
# Metadata and actor
# ---------------------------------------------------------------------------


def test_metadata_resolves_values_and_callables(repository, clock, make_entity) -> None:
    registry = TrackingRegistry()
    registry.register("Article", meta={"source": "cms", "title_length": lambda entity: len(entity.title)})
    store = VersionStore(repository, registry, clock=clock)

    record = store.record_create(make_entity(title="Hello"))

    assert record is not None
    assert record.metadata == {"source": "cms", "title_length": 5}


def test_call_metadata_overlays_configured_metadata(repository, clock, make_entity) -> None:
    registry = TrackingRegistry()
    registry.register("Article", meta={"source": "cms", "channel": "web"})
    store = VersionStore(repository, registry, clock=clock)

    record = store.record_create(make_entity(), metadata={"channel": "api", "request_id": "r-1"})

    assert record is not None
    assert record.metadata == {"source": "cms", "channel": "api", "request_id": "r-1"}


def test_no_metadata_configured_gives_empty_map(store, make_entity) -> None:
    record = store.record_create(make_entity())
    assert record is not None
    assert record.metadata == {}


def test_actor_defaults_to_context_actor(store, make_entity) -> None:
    with actor_context("alice"):
        record = store.record_create(make_entity(entity_id="1"))
    assert record is not None
    assert record.actor == "alice"
    assert current_actor() is None

    explicit = store.record_create(make_entity(entity_id="2"), actor="bob")
    assert explicit is not None
    assert explicit.actor == "bob"


def test_set_actor_binds_until_changed(store, make_entity) -> None:
    set_actor("carol")
    try:
        record = store.record_create(make_entity())
    finally:
        set_actor(None)
    assert record is not None
    assert record.actor == "carol"


# ---------------------------------------------------------------------------
# Ordering and versions_for
# ---------------------------------------------------------------------------


def test_created_at_never_decreases(store, make_entity, clock) -> None:
    entity = make_entity(name="A")
    first = store.record_create(entity)
    clock.advance(hours=-1)
    entity.stage(name="B")

    second = store.record_update(entity)

    assert first is not None and second is not None
    assert second.created_at == first.created_at
    assert second.sort_key > first.sort_key


def test_versions_for_is_ordered_and_reflects_new_records(store, make_entity, clock) -> None:
    entity = make_entity(name="A")
    history = store.versions_for(entity)
    assert list(history) == []
    assert not history

    store.record_create(entity)
    entity.stage(name="B")
    store.record_update(entity)
    entity.commit()
    clock.advance(seconds=1)
    store.record_destroy(entity)

    assert [record.event for record in history] == [VersionEvent.CREATE, VersionEvent.UPDATE, VersionEvent.DESTROY]
    assert list(history) == list(history)
    assert len(history) == 3
    assert history.first() is not None and history.first().event is VersionEvent.CREATE
    assert history.last() is not None and history.last().event is VersionEvent.DESTROY


def test_versions_for_accepts_entity_ref(store, make_entity) -> None:
    entity = make_entity()
    store.record_create(entity)
    assert len(store.versions_for(entity.entity_ref)) == 1


def test_histories_are_isolated_per_entity(store, make_entity) -> None:
    store.record_create(make_entity(entity_id="1"))
    store.record_create(make_entity(entity_id="2"))
    store.record_create(make_entity(entity_id="1", entity_type="Comment"))

    assert len(store.versions_for(make_entity(entity_id="1"))) == 1


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def test_persistence_failure_propagates(registry, clock, make_entity) -> None:
    repository = MagicMock()
    repository.latest_for.return_value = None
    repository.append.side_effect = PersistenceError("disk full")
    store = VersionStore(repository, registry, clock=clock)

    with pytest.raises(PersistenceError, match="disk full"):
        store.record_create(make_entity())


def test_unserializable_state_fails_before_any_write(store, repository, make_entity) -> None:
    entity = make_entity(handler=object())

    with pytest.raises(SerializationError):
        store.record_create(entity)
    assert repository.count() == 0
