"""Bounded sleep-then-poll loop awaiting a terminal remote state."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from az_toolkit.errors import PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_POLL_INTERVAL = 1.0
DEFAULT_POLL_INTERVAL = 5.0


def poll_until(
    refresh: Callable[[], T],
    is_done: Callable[[T], bool],
    timeout: float,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    max_attempts: int | None = None,
    sleep: Callable[[float], None] | None = None,
    clock: Callable[[], float] | None = None,
) -> T:
    """Call *refresh* until *is_done* accepts its result.

    At least one refresh always happens.  Between refreshes the loop sleeps
    for *interval* seconds, clamped to :data:`MIN_POLL_INTERVAL`.  A sleep is
    never shorter than that minimum: once less than it remains before the
    deadline, or *max_attempts* refreshes have been made,
    :class:`PollTimeoutError` is raised carrying the last state seen.
    """
    sleep = sleep or time.sleep
    clock = clock or time.monotonic
    interval = max(interval, MIN_POLL_INTERVAL)
    deadline = clock() + timeout
    attempts = 0
    while True:
        state = refresh()
        attempts += 1
        if is_done(state):
            logger.debug("Polling finished after %d attempt(s)", attempts)
            return state
        if max_attempts is not None and attempts >= max_attempts:
            break
        remaining = deadline - clock()
        if remaining < MIN_POLL_INTERVAL:
            break
        sleep(min(interval, remaining))
    raise PollTimeoutError(
        f"Remote state did not reach a terminal state within {timeout}s "
        f"({attempts} attempt(s))",
        last_state=state,
    )
