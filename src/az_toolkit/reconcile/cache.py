"""Last-known desired and observed representation of one managed resource."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from az_toolkit.errors import NotFoundError

logger = logging.getLogger(__name__)

D = TypeVar("D")
S = TypeVar("S")


@dataclass(frozen=True)
class Unknown:
    """The resource has not been fetched yet."""


@dataclass(frozen=True)
class Absent:
    """The last fetch reported that the resource does not exist."""


@dataclass(frozen=True)
class Present(Generic[S]):
    state: S


RemoteSlot = Unknown | Absent | Present

UNKNOWN = Unknown()
ABSENT = Absent()


class RemoteEntityCache(Generic[D, S]):
    """Holds the desired configuration and a single remote-state slot.

    The slot is only ever replaced as a whole: by :meth:`refresh`, or by
    :meth:`replace` with the state returned from a remote write.
    """

    def __init__(self, local: D, fetch: Callable[[], S]) -> None:
        self.local = local
        self._fetch = fetch
        self._slot: RemoteSlot = UNKNOWN

    @property
    def slot(self) -> RemoteSlot:
        return self._slot

    @property
    def remote(self) -> S | None:
        """Return the cached remote state without fetching."""
        if isinstance(self._slot, Present):
            return self._slot.state
        return None

    def refresh(self) -> S | None:
        """Fetch the remote state; a missing resource is recorded as absent."""
        try:
            state = self._fetch()
        except NotFoundError:
            logger.debug("Remote resource not found, marking as absent")
            self._slot = ABSENT
            return None
        self._slot = Present(state)
        return state

    def exists(self) -> bool:
        if isinstance(self._slot, Unknown):
            self.refresh()
        return isinstance(self._slot, Present)

    def replace(self, state: S | None) -> None:
        self._slot = ABSENT if state is None else Present(state)

    def entity(self) -> D | S:
        """Return the remote state when known, otherwise the desired config."""
        remote = self.remote
        return remote if remote is not None else self.local
