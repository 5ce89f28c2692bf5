"""SQLAlchemy table and session management for durable version storage.

The versions table is append-only: rows are inserted by
SqlAlchemyVersionRepository and never updated or deleted by this package.
In production the database role used by VERSION_TRAIL_DATABASE_URL should
hold only INSERT and SELECT grants on it.

Key exports:
- VersionRow: ORM mapping of the versions table
- create_database_engine(): Build an engine from Settings
- init_database(engine): Create the versions table if missing
- create_session_factory(): Engine + table + sessionmaker in one call
- session_scope(factory): Commit-or-rollback session context
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import JSON, DateTime, Engine, Index, Integer, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from version_trail.observability import get_logger
from version_trail.settings import Settings

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for version-trail tables."""


class VersionRow(Base):
    """One committed version record.

    Attributes:
        id: Autoincrement primary key, used as the record's sequence_id.
        item_type: EntityRef.entity_type of the tracked entity.
        item_id: EntityRef.entity_id of the tracked entity.
        event: create | update | destroy.
        snapshot: Encoded attribute map, stored in the ``object`` column.
        whodunnit: Actor token, if any.
        meta: Resolved metadata for the record.
        created_at: Commit timestamp (UTC).
    """

    __tablename__ = "versions"
    __table_args__ = (Index("ix_versions_item_order", "item_type", "item_id", "created_at", "id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Type tag of the tracked entity",
    )
    item_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Primary key of the tracked entity, as a string",
    )
    event: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Lifecycle event: create | update | destroy",
    )
    snapshot: Mapped[str | None] = mapped_column(
        "object",
        Text,
        nullable=True,
        comment="Encoded attribute map. Post-image for create, pre-image otherwise.",
    )
    whodunnit: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Who caused the change",
    )
    meta: Mapped[dict] = mapped_column(  # type: ignore[type-arg]
        JSON,
        nullable=False,
        default=dict,
        comment="Resolved per-entity-type metadata",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Commit timestamp (UTC), never modified",
    )


def create_database_engine(settings: Settings) -> Engine:
    """Build a SQLAlchemy engine for the versions database.

    Args:
        settings: Supplies database_url and database_echo.
    """
    return create_engine(settings.database_url, echo=settings.database_echo, pool_pre_ping=True)


def init_database(engine: Engine) -> None:
    """Create the versions table (and its index) if it does not exist."""
    logger.info("Ensuring versions table exists", extra={"url": engine.url.render_as_string(hide_password=True)})
    Base.metadata.create_all(engine)


def create_session_factory(settings: Settings, *, create_tables: bool = True) -> sessionmaker[Session]:
    """Build a session factory bound to the configured database.

    Args:
        settings: Database settings.
        create_tables: Create the versions table on startup.

    Returns:
        A sessionmaker producing sessions for the versions database.
    """
    engine = create_database_engine(settings)
    if create_tables:
        init_database(engine)
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error."""
    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
