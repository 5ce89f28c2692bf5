"""Context-local "whodunnit" holder.

Hosts set the current actor once per request or job; the version store reads
it when a record_* call does not name an actor explicitly. Built on
``contextvars`` so it is safe for threads and asyncio tasks alike.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_CURRENT_ACTOR: ContextVar[str | None] = ContextVar("version_trail_actor", default=None)


def current_actor() -> str | None:
    """Return the actor bound to the current context, if any."""
    return _CURRENT_ACTOR.get()


def set_actor(actor: str | None) -> None:
    """Bind an actor to the current context until changed."""
    _CURRENT_ACTOR.set(actor)


@contextmanager
def actor_context(actor: str | None) -> Iterator[None]:
    """Temporarily bind an actor for the duration of a block."""
    token = _CURRENT_ACTOR.set(actor)
    try:
        yield
    finally:
        _CURRENT_ACTOR.reset(token)
