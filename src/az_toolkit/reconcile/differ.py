"""Field-level comparison of desired configuration against remote state."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel


class ChangeKind(StrEnum):
    UNSPECIFIED = "unspecified"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class Change(NamedTuple):
    kind: ChangeKind
    value: Any = None

    @property
    def changed(self) -> bool:
        return self.kind is ChangeKind.CHANGED


UNSPECIFIED = Change(ChangeKind.UNSPECIFIED)
UNCHANGED = Change(ChangeKind.UNCHANGED)


def is_unspecified(value: Any) -> bool:
    """Return *True* when the caller did not ask for this field to change.

    ``None``, blank strings and empty mappings/collections count as "not
    specified".  ``False`` and ``0`` are real values.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Mapping | list | tuple | set | frozenset):
        return len(value) == 0
    if isinstance(value, BaseModel):
        return not value.model_dump(exclude_none=True)
    return False


def diff_value(
    desired: Any,
    remote: Any,
    normalize: Callable[[Any], Any] | None = None,
) -> Change:
    """Compare a scalar or mapping field.

    *normalize* is applied to the desired value before comparison and the
    normalized value is what gets queued.
    """
    if is_unspecified(desired):
        return UNSPECIFIED
    if normalize is not None:
        desired = normalize(desired)
    if desired == remote:
        return UNCHANGED
    return Change(ChangeKind.CHANGED, desired)


def diff_unit(desired: BaseModel | None, remote: BaseModel | None) -> Change:
    """Compare a composite field (e.g. scale settings) as a single unit.

    Sub-fields the caller left as ``None`` inherit the remote value, so an
    omitted sub-field never clears anything.  Any remaining difference marks
    the whole unit as changed and the merged unit is queued.
    """
    if desired is None or is_unspecified(desired):
        return UNSPECIFIED
    explicit = desired.model_dump(exclude_none=True)
    merged = remote.model_copy(update=explicit) if remote is not None else desired
    if merged == remote:
        return UNCHANGED
    return Change(ChangeKind.CHANGED, merged)


def diff_clearable(desired: Any, remote: Any, *, enabled: bool | None) -> Change:
    """Compare a field that the caller may explicitly switch off.

    ``enabled=None`` leaves the field alone, ``enabled=False`` asks for the
    remote value to be cleared (queued as ``None``), ``enabled=True`` behaves
    like :func:`diff_value`.
    """
    if enabled is None:
        return UNSPECIFIED
    if not enabled:
        return UNCHANGED if remote is None else Change(ChangeKind.CHANGED, None)
    return diff_value(desired, remote)
