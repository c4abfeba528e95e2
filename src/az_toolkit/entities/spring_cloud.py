"""Spring Cloud app and deployment facades built on the reconciling builder."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Self

from az_toolkit.azure_api.spring_cloud import (
    SpringCloudAppApi,
    SpringCloudDeploymentApi,
    upload_artifact,
)
from az_toolkit.models import (
    AppConfig,
    AppState,
    DeploymentConfig,
    DeploymentState,
    DeploymentStatus,
    PollResult,
    ProvisioningState,
    RemotableArtifact,
    RuntimeVersion,
    ScaleSettings,
)
from az_toolkit.reconcile import (
    DEFAULT_POLL_INTERVAL,
    Patch,
    ReconcilingBuilder,
    RemoteEntityCache,
    diff_unit,
    diff_value,
    poll_until,
)

logger = logging.getLogger(__name__)

_PROCESSING_STATUSES = {
    DeploymentStatus.ALLOCATING,
    DeploymentStatus.UPGRADING,
    DeploymentStatus.COMPILING,
}
_PROCESSING_PROVISIONING = {ProvisioningState.CREATING, ProvisioningState.UPDATING}


# ---------------------------------------------------------------------------
# Deployment status classification
# ---------------------------------------------------------------------------


def is_deployment_done(state: DeploymentState | None) -> bool:
    """Return *True* once every instance is deployed and registered.

    Instances of the active deployment must be discovered as ``UP``, those
    of an inactive one as ``OUT_OF_SERVICE``.
    """
    if state is None:
        return False
    if state.status in _PROCESSING_STATUSES or state.provisioning_state in _PROCESSING_PROVISIONING:
        return False
    if not state.instances:
        return False
    expected = "UP" if state.active else "OUT_OF_SERVICE"
    deployed = not any((i.status or "").lower() in ("waiting", "pending") for i in state.instances)
    discovered = all((i.discovery_status or "").upper() == expected for i in state.instances)
    return deployed and discovered


def classify(state: DeploymentState | None) -> PollResult:
    if state is None:
        return PollResult.IN_PROGRESS
    if state.status == DeploymentStatus.FAILED or state.provisioning_state == ProvisioningState.FAILED:
        return PollResult.FAILED
    if is_deployment_done(state):
        return PollResult.RUNNING
    return PollResult.IN_PROGRESS


def split_scale_settings(patch: Patch) -> Patch | None:
    """Scale settings are rejected when sent along with other properties."""
    if "scale_settings" not in patch:
        return None
    return patch.subset(["scale_settings"])


# ---------------------------------------------------------------------------
# Deployment
# ---------------------------------------------------------------------------


class DeploymentBuilder(ReconcilingBuilder[DeploymentState]):
    kind = "deployment"

    def __init__(self, deployment: SpringCloudDeployment, *, start: bool = True) -> None:
        super().__init__(
            deployment.cache,
            deployment.api,
            deployment.name,
            split_hooks=[split_scale_settings],
        )
        self.deployment = deployment
        self._start = start

    def _remote_attr(self, attr: str) -> object:
        remote = self.remote
        return getattr(remote, attr) if remote is not None else None

    def config_environment_variables(self, env: dict[str, str] | None) -> Self:
        return self._apply(
            "environment_variables",
            diff_value(env, self._remote_attr("environment_variables"), normalize=dict),
        )

    def config_jvm_options(self, jvm_options: str | None) -> Self:
        return self._apply(
            "jvm_options",
            diff_value(jvm_options, self._remote_attr("jvm_options"), normalize=str.strip),
        )

    def config_runtime_version(self, version: str | None) -> Self:
        return self._apply(
            "runtime_version",
            diff_value(
                version,
                self._remote_attr("runtime_version"),
                normalize=RuntimeVersion.from_string,
            ),
        )

    def config_scale_settings(self, settings: ScaleSettings | None) -> Self:
        remote = self._remote_attr("scale_settings")
        return self._apply("scale_settings", diff_unit(settings, remote))  # type: ignore[arg-type]

    def config_artifact(self, artifact: RemotableArtifact | None) -> Self:
        """Queue the artifact's remote path, re-checked at commit.

        The artifact may still be uploading when this is called; whatever
        remote path it carries when :meth:`commit` runs is what gets written.
        """
        return self._defer(
            "relative_path",
            lambda: diff_value(
                artifact.remote_path if artifact is not None else None,
                self._remote_attr("relative_path"),
            ),
        )

    def _required_for_create(self) -> dict[str, object]:
        return {"artifact": self._patch.get("relative_path")}

    def _after_write(self, state: DeploymentState) -> DeploymentState:
        if not self._start:
            return state
        self.deployment.start()
        return self.deployment.remote or state


class SpringCloudDeployment:
    """One deployment of a Spring Cloud app."""

    def __init__(self, config: DeploymentConfig, api: SpringCloudDeploymentApi) -> None:
        self.config = config
        self.api = api
        self.cache: RemoteEntityCache[DeploymentConfig, DeploymentState] = RemoteEntityCache(
            config, api.get
        )

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def remote(self) -> DeploymentState | None:
        return self.cache.remote

    def exists(self) -> bool:
        return self.cache.exists()

    def entity(self) -> DeploymentConfig | DeploymentState:
        return self.cache.entity()

    def refresh(self) -> Self:
        self.cache.refresh()
        return self

    def start(self) -> Self:
        logger.info("Starting deployment(%s)...", self.name)
        self.api.start()
        return self.refresh()

    def stop(self) -> Self:
        logger.info("Stopping deployment(%s)...", self.name)
        self.api.stop()
        return self.refresh()

    def delete(self) -> None:
        self.api.delete()
        self.cache.replace(None)

    def status(self) -> PollResult:
        return classify(self.cache.remote)

    def wait_until_ready(self, timeout: float, *, interval: float = DEFAULT_POLL_INTERVAL) -> PollResult:
        """Poll until the deployment is running or failed.

        Raises :class:`~az_toolkit.errors.PollTimeoutError` when neither is
        reached within *timeout* seconds.
        """
        logger.info("Getting deployment status...")
        state = poll_until(
            lambda: self.refresh().remote,
            lambda s: classify(s).is_terminal,
            timeout,
            interval=interval,
        )
        return classify(state)

    def create(self, *, start: bool = True) -> DeploymentBuilder:
        return DeploymentBuilder(self, start=start)

    def update(self, *, start: bool = True) -> DeploymentBuilder:
        return DeploymentBuilder(self, start=start)

    def reconcile(self, artifact: RemotableArtifact | None = None, *, start: bool = True) -> DeploymentBuilder:
        """Return a builder pre-configured with every field of :attr:`config`."""
        return (
            DeploymentBuilder(self, start=start)
            .config_runtime_version(self.config.runtime_version)
            .config_jvm_options(self.config.jvm_options)
            .config_environment_variables(self.config.environment_variables)
            .config_scale_settings(self.config.scale_settings)
            .config_artifact(artifact)
        )

    def scale(self, settings: ScaleSettings) -> Self:
        self.update(start=False).config_scale_settings(settings).commit()
        return self


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------


class AppBuilder(ReconcilingBuilder[AppState]):
    kind = "app"

    def _remote_attr(self, attr: str) -> object:
        remote = self.remote
        return getattr(remote, attr) if remote is not None else None

    def config_public(self, is_public: bool | None) -> Self:
        return self._apply("is_public", diff_value(is_public, self._remote_attr("is_public")))

    def config_active_deployment(self, deployment_name: str | None) -> Self:
        return self._apply(
            "active_deployment_name",
            diff_value(deployment_name, self._remote_attr("active_deployment_name")),
        )


class SpringCloudApp:
    """A Spring Cloud app and access to its deployments."""

    def __init__(self, config: AppConfig, api: SpringCloudAppApi) -> None:
        self.config = config
        self.api = api
        self.cache: RemoteEntityCache[AppConfig, AppState] = RemoteEntityCache(config, api.get)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def remote(self) -> AppState | None:
        return self.cache.remote

    def exists(self) -> bool:
        return self.cache.exists()

    def entity(self) -> AppConfig | AppState:
        return self.cache.entity()

    def refresh(self) -> Self:
        self.cache.refresh()
        return self

    def delete(self) -> None:
        self.api.delete()
        self.cache.replace(None)

    def create(self) -> AppBuilder:
        return AppBuilder(self.cache, self.api, self.name)

    def update(self) -> AppBuilder:
        return AppBuilder(self.cache, self.api, self.name)

    def reconcile(self) -> AppBuilder:
        return self.update().config_public(self.config.is_public)

    def activate(self, deployment_name: str) -> AppState | None:
        return self.update().config_active_deployment(deployment_name).commit()

    def deployment(self, config: DeploymentConfig | str) -> SpringCloudDeployment:
        if isinstance(config, str):
            config = DeploymentConfig(name=config, app_name=self.name)
        return SpringCloudDeployment(config, self.api.deployment_api(config.name))

    def upload_artifact(self, artifact: RemotableArtifact | Path) -> RemotableArtifact:
        """Upload a local artifact and record its remote path on the artifact."""
        if isinstance(artifact, Path):
            artifact = RemotableArtifact(local_path=artifact)
        relative_path, upload_url = self.api.get_upload_url()
        logger.info("Uploading artifact %s to %s...", artifact.local_path.name, relative_path)
        upload_artifact(upload_url, artifact.local_path)
        artifact.remote_path = relative_path
        return artifact
