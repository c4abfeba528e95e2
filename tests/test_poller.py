"""Tests for the bounded poller."""

import pytest

from az_toolkit.errors import PollTimeoutError
from az_toolkit.reconcile import MIN_POLL_INTERVAL, poll_until


def _sequence(values):
    calls = []
    it = iter(values)

    def refresh():
        value = next(it)
        calls.append(value)
        return value

    return refresh, calls


class TestPollUntil:
    def test_returns_running_after_third_refresh(self, fake_clock) -> None:
        refresh, calls = _sequence(["Deploying", "Deploying", "Running", "Running"])
        result = poll_until(
            refresh,
            lambda s: s == "Running",
            timeout=60,
            interval=2,
            max_attempts=3,
            sleep=fake_clock.sleep,
            clock=fake_clock,
        )
        assert result == "Running"
        assert calls == ["Deploying", "Deploying", "Running"]
        assert fake_clock.sleeps == [2, 2]

    def test_timeout_carries_last_state(self, fake_clock) -> None:
        states = iter(range(100))

        def refresh():
            return ("Deploying", next(states))

        with pytest.raises(PollTimeoutError) as info:
            poll_until(
                refresh,
                lambda s: s[0] == "Running",
                timeout=10,
                interval=3,
                sleep=fake_clock.sleep,
                clock=fake_clock,
            )
        # t=0, 3, 6, 9, then a final 1s sleep up to the deadline
        assert info.value.last_state == ("Deploying", 4)
        assert fake_clock.now == 10

    def test_max_attempts_exhausted(self, fake_clock) -> None:
        refresh, calls = _sequence(["Deploying"] * 5)
        with pytest.raises(PollTimeoutError) as info:
            poll_until(
                refresh,
                lambda s: s == "Running",
                timeout=600,
                max_attempts=3,
                sleep=fake_clock.sleep,
                clock=fake_clock,
            )
        assert len(calls) == 3
        assert info.value.last_state == "Deploying"

    def test_interval_is_clamped(self, fake_clock) -> None:
        refresh, _ = _sequence(["Deploying", "Running"])
        poll_until(
            refresh,
            lambda s: s == "Running",
            timeout=60,
            interval=0,
            sleep=fake_clock.sleep,
            clock=fake_clock,
        )
        assert fake_clock.sleeps == [MIN_POLL_INTERVAL]

    def test_always_polls_once(self, fake_clock) -> None:
        refresh, calls = _sequence(["Running"])
        assert poll_until(refresh, lambda s: s == "Running", timeout=0, clock=fake_clock) == "Running"
        assert calls == ["Running"]

    def test_gives_up_instead_of_sleeping_below_minimum(self, fake_clock) -> None:
        refresh, calls = _sequence(["Deploying"] * 10)
        with pytest.raises(PollTimeoutError):
            poll_until(
                refresh,
                lambda s: s == "Running",
                timeout=8.5,
                interval=4,
                sleep=fake_clock.sleep,
                clock=fake_clock,
            )
        # refreshes at t=0, 4, 8; only 0.5s would be left after the last one
        assert len(calls) == 3
        assert fake_clock.sleeps == [4, 4]
        assert all(s >= MIN_POLL_INTERVAL for s in fake_clock.sleeps)
