"""Error taxonomy for version-trail.

Every error raised by the engine derives from VersionTrailError so hosts can
catch the whole family at one boundary. Errors always surface to the
immediate caller; nothing in this package retries or swallows them.
"""

from __future__ import annotations


class VersionTrailError(Exception):
    """Base class for all version-trail errors."""


class NotFoundError(VersionTrailError):
    """Raised when a requested historical state or record does not exist.

    Args:
        resource: Kind of thing that was looked up (e.g. "EntityState").
        resource_id: Identifier of the missing resource.
    """

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class PersistenceError(VersionTrailError):
    """Raised when the backing store fails to read or write version records."""


class SerializationError(VersionTrailError):
    """Raised when an attribute map cannot be encoded for storage."""


class DeserializationError(SerializationError):
    """Raised when a stored snapshot cannot be decoded into an attribute map."""


class ReifiedEntityError(VersionTrailError):
    """Raised on an attempt to mutate or persist a reified historical copy."""
