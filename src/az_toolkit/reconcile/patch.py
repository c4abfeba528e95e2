"""Sparse change set consumed by a single remote write."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any


class Patch(Mapping[str, Any]):
    """Fields whose desired value differs from the last observed remote value.

    Only the reconciling builder adds entries, and only after the differ has
    established that the value actually changes.  ``None`` is a legitimate
    value and means "clear this field remotely".
    """

    def __init__(self, fields: Mapping[str, Any] | None = None) -> None:
        self._fields: dict[str, Any] = dict(fields or {})

    def __getitem__(self, name: str) -> Any:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Patch({self._fields!r})"

    @property
    def is_empty(self) -> bool:
        return not self._fields

    def set(self, name: str, value: Any) -> None:
        self._fields[name] = value

    def discard(self, name: str) -> None:
        self._fields.pop(name, None)

    def subset(self, names: Iterable[str]) -> Patch:
        """Return a new patch holding only *names* that are present here."""
        return Patch({k: self._fields[k] for k in names if k in self._fields})

    def without(self, names: Iterable[str]) -> Patch:
        excluded = set(names)
        return Patch({k: v for k, v in self._fields.items() if k not in excluded})
