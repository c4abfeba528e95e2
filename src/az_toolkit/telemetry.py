"""Operation telemetry: start / success / failure events with timing.

The sink is an injected collaborator.  Emitting an event is
fire-and-forget: a failing sink is logged and never interrupts the
operation being tracked.
"""

from __future__ import annotations

import json
import logging
import platform
import time
import uuid
from collections.abc import Callable, Mapping
from enum import StrEnum
from types import TracebackType
from typing import Protocol, Self

from az_toolkit import __version__
from az_toolkit.errors import ConfigurationError

logger = logging.getLogger(__name__)

PLUGIN_NAME = "az-toolkit"

TELEMETRY_KEY_PLUGIN_NAME = "pluginName"
TELEMETRY_KEY_PLUGIN_VERSION = "pluginVersion"
TELEMETRY_KEY_PYTHON_VERSION = "pythonVersion"
TELEMETRY_KEY_ERROR_CODE = "errorCode"
TELEMETRY_KEY_ERROR_TYPE = "errorType"
TELEMETRY_KEY_ERROR_MESSAGE = "errorMessage"
TELEMETRY_KEY_DURATION = "duration"

TELEMETRY_VALUE_ERROR_CODE_SUCCESS = "0"
TELEMETRY_VALUE_ERROR_CODE_FAILURE = "1"
TELEMETRY_VALUE_USER_ERROR = "userError"
TELEMETRY_VALUE_SYSTEM_ERROR = "systemError"


class OperationStatus(StrEnum):
    START = "Start"
    SUCCESS = "Success"
    FAILURE = "Failure"


class Telemetry(Protocol):
    def track_event(self, name: str, properties: Mapping[str, str]) -> None: ...


class NoopTelemetry:
    """Sink used when telemetry is disabled, and in tests."""

    def track_event(self, name: str, properties: Mapping[str, str]) -> None:
        return None


class LoggingTelemetry:
    """Emit each event as one structured record on the ``az_toolkit.telemetry`` logger."""

    def __init__(self) -> None:
        self.session_id = str(uuid.uuid4())
        self.installation_id = str(uuid.uuid5(uuid.NAMESPACE_DNS, platform.node() or "localhost"))
        self._logger = logging.getLogger("az_toolkit.telemetry")

    def track_event(self, name: str, properties: Mapping[str, str]) -> None:
        payload = {
            "event": name,
            "sessionId": self.session_id,
            "installationId": self.installation_id,
            **properties,
        }
        self._logger.info(json.dumps(payload, sort_keys=True))


def user_agent(telemetry: Telemetry) -> str:
    """Build the ARM user agent, tagged with ids when telemetry is on."""
    base = f"{PLUGIN_NAME}/{__version__}"
    if isinstance(telemetry, LoggingTelemetry):
        return f"{base} installationId:{telemetry.installation_id} sessionId:{telemetry.session_id}"
    return base


def is_user_error(exc: BaseException) -> bool:
    return isinstance(exc, ConfigurationError | ValueError)


class OperationTracker:
    """Track one operation through its start, success or failure.

    Usable as a context manager; exceptions are recorded and re-raised.
    """

    def __init__(
        self,
        operation: str,
        telemetry: Telemetry,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.operation = operation
        self.telemetry = telemetry
        self._clock = clock
        self._started: float | None = None
        self.properties: dict[str, str] = {}

    def trace(self, **properties: object) -> None:
        """Attach extra properties; ``None`` values are skipped."""
        for key, value in properties.items():
            if value is not None:
                self.properties[key] = str(value)

    def start(self) -> None:
        self._started = self._clock()
        self.properties.update(
            {
                TELEMETRY_KEY_PLUGIN_NAME: PLUGIN_NAME,
                TELEMETRY_KEY_PLUGIN_VERSION: __version__,
                TELEMETRY_KEY_PYTHON_VERSION: platform.python_version(),
            }
        )
        self._emit(OperationStatus.START)

    def success(self) -> None:
        self.properties[TELEMETRY_KEY_ERROR_CODE] = TELEMETRY_VALUE_ERROR_CODE_SUCCESS
        self.properties[TELEMETRY_KEY_DURATION] = self._duration()
        self._emit(OperationStatus.SUCCESS)

    def failure(self, exc: BaseException) -> None:
        self.properties[TELEMETRY_KEY_ERROR_CODE] = TELEMETRY_VALUE_ERROR_CODE_FAILURE
        self.properties[TELEMETRY_KEY_ERROR_TYPE] = (
            TELEMETRY_VALUE_USER_ERROR if is_user_error(exc) else TELEMETRY_VALUE_SYSTEM_ERROR
        )
        self.properties[TELEMETRY_KEY_ERROR_MESSAGE] = str(exc)
        self.properties[TELEMETRY_KEY_DURATION] = self._duration()
        self._emit(OperationStatus.FAILURE)

    def _duration(self) -> str:
        if self._started is None:
            return "0"
        return str(int((self._clock() - self._started) * 1000))

    def _emit(self, status: OperationStatus) -> None:
        name = f"{self.operation}.{status.value}"
        try:
            self.telemetry.track_event(name, dict(self.properties))
        except Exception:
            logger.debug("Failed to emit telemetry event %s", name, exc_info=True)

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            self.success()
        else:
            self.failure(exc)
