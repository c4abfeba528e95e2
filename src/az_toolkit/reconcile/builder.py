"""Create-or-update builder that only writes what differs from remote state.

One builder type serves both creation and update: the mode is read from
the cache's tagged remote slot when :meth:`ReconcilingBuilder.commit` runs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Any, Generic, Protocol, Self, TypeVar

from az_toolkit.errors import AlreadyCommittedError, ConfigurationError
from az_toolkit.reconcile.cache import RemoteEntityCache
from az_toolkit.reconcile.differ import Change, ChangeKind
from az_toolkit.reconcile.patch import Patch

logger = logging.getLogger(__name__)

S = TypeVar("S")
S_co = TypeVar("S_co", covariant=True)


class RemoteApi(Protocol[S_co]):
    """Remote management collaborator bound to a single resource identity."""

    def get(self) -> S_co: ...

    def create_or_update(self, patch: Patch, *, create: bool) -> S_co: ...

    def delete(self) -> None: ...


# A split hook returns the part of the patch that must be written on its own,
# before the rest, or None when it has nothing to split off.
SplitHook = Callable[[Patch], Patch | None]


class BuilderState(StrEnum):
    EMPTY = "empty"
    DIRTY = "dirty"
    COMMITTED = "committed"


class ReconcilingBuilder(Generic[S]):
    """Accumulate a :class:`Patch` and commit it in one remote write.

    Subclasses expose ``config_*`` methods that compute a
    :class:`~az_toolkit.reconcile.differ.Change` and hand it to
    :meth:`_apply`.
    """

    kind = "resource"

    def __init__(
        self,
        cache: RemoteEntityCache[Any, S],
        api: RemoteApi[S],
        name: str,
        *,
        split_hooks: Sequence[SplitHook] = (),
    ) -> None:
        self.cache = cache
        self.api = api
        self.name = name
        self._split_hooks = list(split_hooks)
        self._patch = Patch()
        self._deferred: dict[str, Callable[[], Change]] = {}
        self._committed = False
        self._unfinished: S | None = None
        self.written = False

    @property
    def patch(self) -> Patch:
        return self._patch

    @property
    def state(self) -> BuilderState:
        if self._committed:
            return BuilderState.COMMITTED
        if self._patch or self._unfinished is not None:
            return BuilderState.DIRTY
        return BuilderState.EMPTY

    @property
    def remote(self) -> S | None:
        """Remote state to diff against, fetched on first use."""
        self.cache.exists()
        return self.cache.remote

    def _apply(self, field: str, change: Change) -> Self:
        if self._committed:
            raise AlreadyCommittedError(f"{self.kind}({self.name}) is already committed")
        if change.changed:
            self._patch.set(field, change.value)
        elif change.kind is ChangeKind.UNCHANGED:
            self._patch.discard(field)
        return self

    def _defer(self, field: str, compute: Callable[[], Change]) -> Self:
        """Re-run *compute* at commit time, for values only known then.

        An unspecified value does not replace a check queued earlier.
        """
        change = compute()
        if change.kind is not ChangeKind.UNSPECIFIED or field not in self._deferred:
            self._deferred[field] = compute
        return self._apply(field, change)

    def _required_for_create(self) -> dict[str, Any]:
        """Map of patch field -> value that must be present to create."""
        return {}

    def _validate_create(self) -> None:
        missing = [k for k, v in self._required_for_create().items() if v is None or v == ""]
        if missing:
            raise ConfigurationError(
                f"Cannot create {self.kind}({self.name}): missing {', '.join(missing)}",
                missing=missing,
            )

    def _after_write(self, state: S) -> S:
        """Hook run after the main write succeeded.

        If it raises, the builder stays dirty and the next :meth:`commit`
        re-runs only this hook.
        """
        return state

    def _finish(self, state: S) -> S:
        self._unfinished = state
        result = self._after_write(state)
        self._unfinished = None
        self._committed = True
        return result

    def _write(self, patch: Patch, *, create: bool) -> S:
        state = self.api.create_or_update(patch, create=create)
        self.cache.replace(state)
        return state

    def commit(self) -> S | None:
        """Issue the remote write(s) and fold the result into the cache.

        Returns the cached state untouched when nothing differs from an
        existing resource.  Remote errors propagate and leave the builder
        dirty so that ``commit()`` may be retried.
        """
        if self._committed:
            raise AlreadyCommittedError(f"{self.kind}({self.name}) is already committed")
        if self._unfinished is not None:
            logger.info("Resuming %s(%s) after its last write...", self.kind, self.name)
            return self._finish(self._unfinished)
        for field, compute in self._deferred.items():
            self._apply(field, compute())

        exists = self.cache.exists()
        if exists and self._patch.is_empty:
            logger.info("Skip updating %s(%s) since its properties are not changed.", self.kind, self.name)
            self._committed = True
            return self.cache.remote

        if not exists:
            self._validate_create()
            logger.info("Start creating %s(%s)...", self.kind, self.name)
            state = self._write(self._patch, create=True)
            logger.info("%s(%s) is successfully created.", self.kind.capitalize(), self.name)
        else:
            for hook in self._split_hooks:
                part = hook(self._patch)
                if part is None or part.is_empty:
                    continue
                logger.info("Start updating %s(%s) fields %s separately...", self.kind, self.name, sorted(part))
                self._write(part, create=False)
                self.written = True
                self._patch = self._patch.without(part)
            if self._patch.is_empty:
                self._committed = True
                return self.cache.remote
            logger.info("Start updating %s(%s)...", self.kind, self.name)
            state = self._write(self._patch, create=False)
            logger.info("%s(%s) is successfully updated.", self.kind.capitalize(), self.name)

        self.written = True
        return self._finish(state)
