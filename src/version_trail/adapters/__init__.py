"""Persistence and entity adapters for version-trail."""

from version_trail.adapters.memory import InMemoryVersionRepository
from version_trail.adapters.orm_entity import OrmEntity
from version_trail.adapters.repositories import SqlAlchemyVersionRepository

__all__ = [
    "InMemoryVersionRepository",
    "OrmEntity",
    "SqlAlchemyVersionRepository",
]
