"""Append-only in-memory version repository.

Stores VersionRecord instances keyed by EntityRef, each list kept sorted by
(created_at, sequence_id). All write operations are append-only. No updates
or deletes are permitted.

Useful for tests and for hosts that keep history only for the life of the
process. Durable storage goes through the SQLAlchemy repository.
"""

from __future__ import annotations

import bisect
import itertools
import threading
from datetime import datetime

from version_trail.core.models import EntityRef, VersionRecord


class InMemoryVersionRepository:
    """Append-only repository for VersionRecord instances.

    Maintains per-entity record lists sorted by (created_at, sequence_id) and
    assigns sequence ids from a process-local counter, so records sharing a
    timestamp keep their commit order.
    """

    def __init__(self) -> None:
        """Initialize an empty repository."""
        # { entity_ref: list[VersionRecord] } sorted by sort_key ascending
        self._records: dict[EntityRef, list[VersionRecord]] = {}
        # Parallel list of sort keys for bisect operations
        self._keys: dict[EntityRef, list[tuple[datetime, int]]] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def append(self, record: VersionRecord) -> VersionRecord:
        """Commit a record, assigning its sequence_id.

        Uses bisect to keep each entity's list in sort order, so a record
        carrying an earlier timestamp than existing ones still lands in place.

        Args:
            record: The record to store. Any sequence_id it carries is replaced.

        Returns:
            The committed record.
        """
        with self._lock:
            committed = record.model_copy(update={"sequence_id": next(self._sequence)})
            entity_ref = committed.entity_ref
            records = self._records.setdefault(entity_ref, [])
            keys = self._keys.setdefault(entity_ref, [])

            index = bisect.bisect_right(keys, committed.sort_key)
            records.insert(index, committed)
            keys.insert(index, committed.sort_key)
        return committed

    def list_for(self, entity_ref: EntityRef) -> list[VersionRecord]:
        """Return all records for an entity in ascending order."""
        with self._lock:
            return list(self._records.get(entity_ref, []))

    def latest_for(self, entity_ref: EntityRef) -> VersionRecord | None:
        """Return the newest record for an entity, or None."""
        with self._lock:
            records = self._records.get(entity_ref)
            return records[-1] if records else None

    def count(self, entity_ref: EntityRef | None = None) -> int:
        """Return the number of stored records, for one entity or in total."""
        with self._lock:
            if entity_ref is not None:
                return len(self._records.get(entity_ref, []))
            return sum(len(records) for records in self._records.values())
