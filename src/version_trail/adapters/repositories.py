"""SQLAlchemy repository for version records.

Implements IVersionRepository from core/interfaces.py on top of a sync
SQLAlchemy Session. The repository never commits: the host owns the
transaction, so a version write commits or rolls back together with the
entity mutation it documents when both share a session.
"""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from version_trail.adapters.database import VersionRow
from version_trail.core.models import EntityRef, VersionEvent, VersionRecord
from version_trail.errors import PersistenceError
from version_trail.observability import get_logger

logger = get_logger(__name__)


def _to_record(row: VersionRow) -> VersionRecord:
    return VersionRecord(
        entity_ref=EntityRef(entity_type=row.item_type, entity_id=row.item_id),
        event=VersionEvent(row.event),
        snapshot=row.snapshot,
        actor=row.whodunnit,
        metadata=dict(row.meta or {}),
        created_at=row.created_at,
        sequence_id=row.id,
    )


class SqlAlchemyVersionRepository:
    """Append-only repository for the versions table.

    There is no update() or delete() method: committed records are immutable.

    Args:
        session: A SQLAlchemy session for the versions database.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(self, record: VersionRecord) -> VersionRecord:
        """Insert a record and flush so its sequence_id is assigned.

        Args:
            record: The record to write.

        Returns:
            The committed record carrying the row id as sequence_id.

        Raises:
            PersistenceError: If the insert fails. The pending row is expunged;
                the host must still roll back the session.
        """
        row = VersionRow(
            item_type=record.entity_ref.entity_type,
            item_id=record.entity_ref.entity_id,
            event=record.event.value,
            snapshot=record.snapshot,
            whodunnit=record.actor,
            meta=dict(record.metadata),
            created_at=record.created_at,
        )
        try:
            self._session.add(row)
            self._session.flush()
        except SQLAlchemyError as exc:
            if row in self._session:
                self._session.expunge(row)
            logger.error(
                "Failed to write version record",
                extra={"entity": str(record.entity_ref), "event": record.event.value, "error": str(exc)},
            )
            raise PersistenceError(f"Failed to write version record for {record.entity_ref}") from exc
        return record.model_copy(update={"sequence_id": row.id})

    def list_for(self, entity_ref: EntityRef) -> list[VersionRecord]:
        """Return all records for an entity ordered by (created_at, id).

        Raises:
            PersistenceError: If the query fails.
        """
        stmt = (
            select(VersionRow)
            .where(
                VersionRow.item_type == entity_ref.entity_type,
                VersionRow.item_id == entity_ref.entity_id,
            )
            .order_by(VersionRow.created_at.asc(), VersionRow.id.asc())
        )
        try:
            rows = self._session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read version records for {entity_ref}") from exc
        return [_to_record(row) for row in rows]

    def latest_for(self, entity_ref: EntityRef) -> VersionRecord | None:
        """Return the newest record for an entity, or None.

        Raises:
            PersistenceError: If the query fails.
        """
        stmt = (
            select(VersionRow)
            .where(
                VersionRow.item_type == entity_ref.entity_type,
                VersionRow.item_id == entity_ref.entity_id,
            )
            .order_by(VersionRow.created_at.desc(), VersionRow.id.desc())
            .limit(1)
        )
        try:
            row = self._session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read latest version record for {entity_ref}") from exc
        return _to_record(row) if row is not None else None
