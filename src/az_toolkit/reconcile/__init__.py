"""Desired-vs-remote reconciliation: differ, builder, cache and poller."""

from az_toolkit.reconcile.builder import (  # noqa: F401
    BuilderState,
    ReconcilingBuilder,
    RemoteApi,
    SplitHook,
)
from az_toolkit.reconcile.cache import (  # noqa: F401
    ABSENT,
    UNKNOWN,
    Absent,
    Present,
    RemoteEntityCache,
    Unknown,
)
from az_toolkit.reconcile.differ import (  # noqa: F401
    UNCHANGED,
    UNSPECIFIED,
    Change,
    ChangeKind,
    diff_clearable,
    diff_unit,
    diff_value,
    is_unspecified,
)
from az_toolkit.reconcile.patch import Patch  # noqa: F401
from az_toolkit.reconcile.poller import (  # noqa: F401
    DEFAULT_POLL_INTERVAL,
    MIN_POLL_INTERVAL,
    poll_until,
)
