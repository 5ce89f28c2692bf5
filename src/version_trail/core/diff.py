"""Attribute-level diffing and the change-relevance policy."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from typing import Any

from version_trail.core.models import ABSENT, AttributeChange


def diff(
    before: Mapping[str, Any],
    after: Mapping[str, Any],
    ignored: Collection[str] = frozenset(),
) -> list[AttributeChange]:
    """Compute the attribute-level differences between two attribute maps.

    Values are compared with ``==``, so nested dicts and lists compare
    structurally. An attribute missing on one side always differs from the
    other side, even when the other side holds None.

    Args:
        before: Attribute map before the change.
        after: Attribute map after the change.
        ignored: Attribute names to leave out of the result.

    Returns:
        One AttributeChange per differing attribute, sorted by attribute
        name. Missing sides are ABSENT.
    """
    changes: list[AttributeChange] = []
    for name in sorted((before.keys() | after.keys()) - set(ignored)):
        old = before[name] if name in before else ABSENT
        new = after[name] if name in after else ABSENT
        if old is not ABSENT and new is not ABSENT and old == new:
            continue
        changes.append(AttributeChange(attribute=name, before=old, after=new))
    return changes


def is_change_relevant(changed: Iterable[str], ignore: Collection[str]) -> bool:
    """Decide whether a change is worth a version record.

    A change is relevant when at least one changed attribute lies outside the
    ignore set. No changed attributes is never relevant.
    """
    return any(name not in ignore for name in changed)
