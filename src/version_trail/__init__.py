"""version-trail: replayable version history and audit trails for mutable entities.

Captures a snapshot whenever a tracked entity is created, updated or
destroyed, reconstructs the entity's state at any past moment, and builds an
attribute-level audit trail of what changed, when, and by whom.
"""

from __future__ import annotations

from version_trail.core.actor import actor_context, current_actor, set_actor
from version_trail.core.audit import AuditTrailBuilder
from version_trail.core.diff import diff, is_change_relevant
from version_trail.core.models import ABSENT, AttributeChange, AuditEntry, EntityRef, VersionEvent, VersionRecord
from version_trail.core.reifier import ReifiedEntity, Reifier, is_reified, reified_version
from version_trail.core.store import VersionHistory, VersionStore
from version_trail.core.tracking import TrackingConfig, TrackingRegistry
from version_trail.engine import VersionTrail
from version_trail.errors import (
    DeserializationError,
    NotFoundError,
    PersistenceError,
    ReifiedEntityError,
    SerializationError,
    VersionTrailError,
)
from version_trail.settings import Settings

__all__ = [
    "ABSENT",
    "AttributeChange",
    "AuditEntry",
    "AuditTrailBuilder",
    "DeserializationError",
    "EntityRef",
    "NotFoundError",
    "PersistenceError",
    "ReifiedEntity",
    "ReifiedEntityError",
    "Reifier",
    "SerializationError",
    "Settings",
    "TrackingConfig",
    "TrackingRegistry",
    "VersionEvent",
    "VersionHistory",
    "VersionRecord",
    "VersionStore",
    "VersionTrail",
    "VersionTrailError",
    "actor_context",
    "current_actor",
    "diff",
    "is_change_relevant",
    "is_reified",
    "reified_version",
    "set_actor",
]
