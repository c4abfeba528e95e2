"""Shared test fixtures for az-toolkit tests."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from az_toolkit.auth import AuthType, AzureCredentialWrapper
from az_toolkit.reconcile import Patch


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeApi:
    """In-memory remote API recording every write."""

    def __init__(self, state=None, *, build=None) -> None:
        self.state = state
        self.build = build
        self.writes: list[tuple[dict, bool]] = []
        self.gets = 0
        self.fail_next: Exception | None = None
        self.starts = 0
        self.stops = 0

    def get(self):
        from az_toolkit.errors import NotFoundError

        self.gets += 1
        if self.state is None:
            raise NotFoundError("not found")
        return self.state

    def create_or_update(self, patch: Patch, *, create: bool):
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc
        self.writes.append((dict(patch), create))
        self.state = self.build(self.state, patch)
        return self.state

    def delete(self) -> None:
        self.state = None

    def start(self) -> None:
        self.starts += 1

    def stop(self) -> None:
        self.stops += 1


@pytest.fixture()
def fake_api() -> type[FakeApi]:
    return FakeApi


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_credential() -> AzureCredentialWrapper:
    mock_token = MagicMock()
    mock_token.token = "fake-token"
    cred = MagicMock()
    cred.get_token.return_value = mock_token
    return AzureCredentialWrapper(auth_method=AuthType.azure_cli, credential=cred)


@pytest.fixture(autouse=True)
def _mock_login(fake_credential):
    """Prevent real Azure credential calls in every test."""
    with patch("az_toolkit.cli.login", return_value=fake_credential) as login:
        yield login
