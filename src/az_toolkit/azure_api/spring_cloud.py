"""Azure Spring Cloud apps and deployments – Microsoft.AppPlatform RP."""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from az_toolkit.azure_api._client import ArmClient
from az_toolkit.errors import RemoteRequestError, RemoteUnavailableError
from az_toolkit.models import (
    AppState,
    DeploymentInstance,
    DeploymentState,
    RuntimeVersion,
    ScaleSettings,
)
from az_toolkit.reconcile.patch import Patch

logger = logging.getLogger(__name__)

SPRING_API_VERSION = "2020-07-01"
_FILE_API_VERSION = "2019-12-12"
_UPLOAD_CHUNK_SIZE = 4 * 1024 * 1024  # Azure Files max range size


# ---------------------------------------------------------------------------
# ARM payload translation
# ---------------------------------------------------------------------------


def _runtime_version(value: str | None) -> RuntimeVersion | None:
    if not value:
        return None
    try:
        return RuntimeVersion(value)
    except ValueError:
        logger.debug("Unknown runtime version %r reported by ARM", value)
        return None


def app_from_arm(data: dict) -> AppState:
    props = data.get("properties") or {}
    return AppState(
        id=data["id"],
        name=data["name"],
        is_public=bool(props.get("public")),
        url=props.get("url"),
        fqdn=props.get("fqdn"),
        active_deployment_name=props.get("activeDeploymentName"),
        provisioning_state=props.get("provisioningState"),
    )


def deployment_from_arm(data: dict) -> DeploymentState:
    props = data.get("properties") or {}
    settings = props.get("deploymentSettings") or {}
    source = props.get("source") or {}
    sku = data.get("sku") or {}
    scale = ScaleSettings(
        cpu=settings.get("cpu"),
        memory_in_gb=settings.get("memoryInGB"),
        capacity=sku.get("capacity"),
    )
    return DeploymentState(
        id=data["id"],
        name=data["name"],
        app_name=props.get("appName"),
        status=props.get("status"),
        provisioning_state=props.get("provisioningState"),
        active=bool(props.get("active")),
        runtime_version=_runtime_version(settings.get("runtimeVersion")),
        jvm_options=settings.get("jvmOptions"),
        environment_variables=settings.get("environmentVariables"),
        scale_settings=None if scale.is_empty() else scale,
        relative_path=source.get("relativePath"),
        instances=tuple(
            DeploymentInstance(
                name=i.get("name", ""),
                status=i.get("status"),
                reason=i.get("reason"),
                discovery_status=i.get("discoveryStatus"),
            )
            for i in props.get("instances") or []
        ),
    )


def app_body(patch: Patch) -> dict:
    props: dict = {}
    if "is_public" in patch:
        props["public"] = patch["is_public"]
    if "active_deployment_name" in patch:
        props["activeDeploymentName"] = patch["active_deployment_name"]
    return {"properties": props}


def deployment_body(patch: Patch) -> dict:
    """Translate a deployment patch into a sparse ARM request body."""
    body: dict = {}
    settings: dict = {}
    if "runtime_version" in patch:
        settings["runtimeVersion"] = str(patch["runtime_version"])
    if "jvm_options" in patch:
        settings["jvmOptions"] = patch["jvm_options"]
    if "environment_variables" in patch:
        settings["environmentVariables"] = patch["environment_variables"]
    if "scale_settings" in patch:
        scale: ScaleSettings = patch["scale_settings"]
        if scale.cpu is not None:
            settings["cpu"] = scale.cpu
        if scale.memory_in_gb is not None:
            settings["memoryInGB"] = scale.memory_in_gb
        if scale.capacity is not None:
            body["sku"] = {"capacity": scale.capacity}
    props: dict = {}
    if settings:
        props["deploymentSettings"] = settings
    if "relative_path" in patch:
        props["source"] = {"type": "Jar", "relativePath": patch["relative_path"]}
    if props:
        body["properties"] = props
    return body


# ---------------------------------------------------------------------------
# Resource APIs
# ---------------------------------------------------------------------------


def _app_path(subscription_id: str, resource_group: str, cluster_name: str, app_name: str) -> str:
    return (
        f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.AppPlatform/Spring/{cluster_name}/apps/{app_name}"
    )


class SpringCloudAppApi:
    """CRUD over one Spring Cloud app."""

    def __init__(
        self,
        client: ArmClient,
        subscription_id: str,
        resource_group: str,
        cluster_name: str,
        app_name: str,
    ) -> None:
        self.client = client
        self.subscription_id = subscription_id
        self.resource_group = resource_group
        self.cluster_name = cluster_name
        self.app_name = app_name
        self.path = _app_path(subscription_id, resource_group, cluster_name, app_name)

    def get(self) -> AppState:
        return app_from_arm(self.client.get(self.path, SPRING_API_VERSION))

    def create_or_update(self, patch: Patch, *, create: bool) -> AppState:
        body = app_body(patch)
        if create:
            data = self.client.put(self.path, SPRING_API_VERSION, body)
        else:
            data = self.client.patch(self.path, SPRING_API_VERSION, body)
        return app_from_arm(data)

    def delete(self) -> None:
        self.client.delete(self.path, SPRING_API_VERSION)

    def get_upload_url(self) -> tuple[str, str]:
        """Return ``(relative_path, upload_url)`` for a new artifact upload."""
        data = self.client.post(f"{self.path}/getResourceUploadUrl", SPRING_API_VERSION) or {}
        return data["relativePath"], data["uploadUrl"]

    def deployment_api(self, deployment_name: str) -> SpringCloudDeploymentApi:
        return SpringCloudDeploymentApi(self, deployment_name)


class SpringCloudDeploymentApi:
    """CRUD plus start/stop over one deployment of a Spring Cloud app."""

    def __init__(self, app: SpringCloudAppApi, deployment_name: str) -> None:
        self.app = app
        self.client = app.client
        self.deployment_name = deployment_name
        self.path = f"{app.path}/deployments/{deployment_name}"

    def get(self) -> DeploymentState:
        return deployment_from_arm(self.client.get(self.path, SPRING_API_VERSION))

    def create_or_update(self, patch: Patch, *, create: bool) -> DeploymentState:
        body = deployment_body(patch)
        if create:
            data = self.client.put(self.path, SPRING_API_VERSION, body)
        else:
            data = self.client.patch(self.path, SPRING_API_VERSION, body)
        return deployment_from_arm(data)

    def delete(self) -> None:
        self.client.delete(self.path, SPRING_API_VERSION)

    def start(self) -> None:
        self.client.post(f"{self.path}/start", SPRING_API_VERSION)

    def stop(self) -> None:
        self.client.post(f"{self.path}/stop", SPRING_API_VERSION)


# ---------------------------------------------------------------------------
# Artifact upload (Azure Files REST against the SAS URL handed out by ARM)
# ---------------------------------------------------------------------------


def _range_url(upload_url: str) -> str:
    sep = "&" if "?" in upload_url else "?"
    return f"{upload_url}{sep}comp=range"


def upload_artifact(upload_url: str, path: Path, *, timeout: int = 300) -> None:
    """Upload *path* to the file-share SAS *upload_url* in 4 MiB ranges."""
    size = path.stat().st_size
    base_headers = {"x-ms-version": _FILE_API_VERSION}
    try:
        resp = requests.put(
            upload_url,
            headers={**base_headers, "x-ms-type": "file", "x-ms-content-length": str(size)},
            timeout=timeout,
        )
        if resp.status_code >= 400:
            raise RemoteRequestError(
                f"Failed to create remote file for {path.name} ({resp.status_code})",
                status_code=resp.status_code,
            )
        with path.open("rb") as fh:
            offset = 0
            while chunk := fh.read(_UPLOAD_CHUNK_SIZE):
                end = offset + len(chunk) - 1
                resp = requests.put(
                    _range_url(upload_url),
                    headers={
                        **base_headers,
                        "x-ms-range": f"bytes={offset}-{end}",
                        "x-ms-write": "update",
                    },
                    data=chunk,
                    timeout=timeout,
                )
                if resp.status_code >= 400:
                    raise RemoteRequestError(
                        f"Failed to upload {path.name} range {offset}-{end} ({resp.status_code})",
                        status_code=resp.status_code,
                    )
                offset = end + 1
    except (requests.ConnectionError, requests.Timeout) as exc:
        raise RemoteUnavailableError(f"Cannot upload {path.name}: {exc}") from exc
    logger.debug("Uploaded %s (%d bytes)", path, size)
