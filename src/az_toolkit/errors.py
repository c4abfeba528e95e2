"""Exception taxonomy shared by the reconcile core, the ARM client and the CLI."""

from __future__ import annotations

from typing import Any


class ToolkitError(Exception):
    """Base class for every error raised by az-toolkit."""


class ConfigurationError(ToolkitError, ValueError):
    """The caller-supplied desired state is invalid.

    Fatal: reported to the caller, never retried.
    """

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class RemoteUnavailableError(ToolkitError):
    """Credential or connectivity failure talking to Azure."""


class NotFoundError(ToolkitError):
    """The remote resource does not exist.

    Raised by the ARM layer; refresh operations catch it and record the
    resource as absent.
    """


class RemoteRequestError(ToolkitError):
    """ARM answered with a non-success status other than 404."""

    def __init__(self, message: str, status_code: int, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class PollTimeoutError(ToolkitError):
    """The poller gave up before the remote resource reached a terminal state."""

    def __init__(self, message: str, last_state: Any = None) -> None:
        super().__init__(message)
        self.last_state = last_state


class UsageError(ToolkitError):
    """An API was called in an order it does not support."""


class AlreadyCommittedError(UsageError):
    """``commit()`` was called on a builder that has already committed."""
