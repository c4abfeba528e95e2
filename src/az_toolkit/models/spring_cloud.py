"""Pydantic models for Azure Spring Cloud apps and deployments.

``*Config`` models are the desired configuration supplied by the caller,
``*State`` models are snapshots translated from ARM responses.  Both are
frozen: a refresh produces a new snapshot instead of mutating one.
"""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from az_toolkit.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class RuntimeVersion(StrEnum):
    JAVA_8 = "Java_8"
    JAVA_11 = "Java_11"
    JAVA_17 = "Java_17"

    @classmethod
    def from_string(cls, value: str) -> RuntimeVersion:
        """Accept ``8``, ``java 11``, ``Java_17`` and similar spellings."""
        match = re.fullmatch(r"(?:java[\s_-]*)?(\d+)", value.strip(), flags=re.IGNORECASE)
        if match:
            for member in cls:
                if member.value == f"Java_{match.group(1)}":
                    return member
        valid = ", ".join(m.value for m in cls)
        raise ConfigurationError(f"Invalid runtime version '{value}', supported values: {valid}")


class DeploymentStatus(StrEnum):
    UNKNOWN = "Unknown"
    STOPPED = "Stopped"
    RUNNING = "Running"
    FAILED = "Failed"
    ALLOCATING = "Allocating"
    UPGRADING = "Upgrading"
    COMPILING = "Compiling"


class ProvisioningState(StrEnum):
    CREATING = "Creating"
    UPDATING = "Updating"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    DELETING = "Deleting"


class PollResult(StrEnum):
    """Terminal / non-terminal classification of a deployment snapshot."""

    RUNNING = "running"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"

    @property
    def is_terminal(self) -> bool:
        return self is not PollResult.IN_PROGRESS


# ---------------------------------------------------------------------------
# Shared value objects
# ---------------------------------------------------------------------------


class ScaleSettings(BaseModel):
    """CPU cores, memory in GB and instance count, diffed as one unit."""

    model_config = ConfigDict(frozen=True)

    cpu: int | None = None
    memory_in_gb: int | None = None
    capacity: int | None = None

    def is_empty(self) -> bool:
        return self.cpu is None and self.memory_in_gb is None and self.capacity is None


class RemotableArtifact(BaseModel):
    """A local artifact whose remote path is only known after upload."""

    local_path: Path
    remote_path: str | None = None


class DeploymentInstance(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    status: str | None = None
    reason: str | None = None
    discovery_status: str | None = None


# ---------------------------------------------------------------------------
# Desired configuration
# ---------------------------------------------------------------------------


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    cluster_name: str
    is_public: bool | None = None
    active_deployment_name: str | None = None


class DeploymentConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "default"
    app_name: str
    runtime_version: str | None = None
    jvm_options: str | None = None
    environment_variables: dict[str, str] | None = None
    scale_settings: ScaleSettings | None = None
    artifact_path: Path | None = None


# ---------------------------------------------------------------------------
# Remote state
# ---------------------------------------------------------------------------


class AppState(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    is_public: bool = False
    url: str | None = None
    fqdn: str | None = None
    active_deployment_name: str | None = None
    provisioning_state: str | None = None


class DeploymentState(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    app_name: str | None = None
    status: str | None = None
    provisioning_state: str | None = None
    active: bool = False
    runtime_version: RuntimeVersion | None = None
    jvm_options: str | None = None
    environment_variables: dict[str, str] | None = None
    scale_settings: ScaleSettings | None = None
    relative_path: str | None = None
    instances: tuple[DeploymentInstance, ...] = Field(default_factory=tuple)
