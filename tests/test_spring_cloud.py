"""Tests for Spring Cloud ARM translation, status classification and facades."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from az_toolkit.azure_api import (
    app_body,
    app_from_arm,
    deployment_body,
    deployment_from_arm,
    upload_artifact,
)
from az_toolkit.entities import SpringCloudApp, SpringCloudDeployment
from az_toolkit.entities.spring_cloud import classify, is_deployment_done
from az_toolkit.errors import PollTimeoutError, RemoteRequestError, RemoteUnavailableError
from az_toolkit.models import (
    AppConfig,
    AppState,
    DeploymentConfig,
    DeploymentInstance,
    DeploymentState,
    PollResult,
    RemotableArtifact,
    RuntimeVersion,
    ScaleSettings,
)
from az_toolkit.reconcile import Patch

APP_ID = "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.AppPlatform/Spring/cluster/apps/api"


def _deployment(**kwargs) -> DeploymentState:
    values = {"id": f"{APP_ID}/deployments/default", "name": "default", "status": "Running"}
    values.update(kwargs)
    return DeploymentState(**values)


def _instances(*pairs: tuple[str, str]) -> tuple[DeploymentInstance, ...]:
    return tuple(
        DeploymentInstance(name=f"i{n}", status=status, discovery_status=discovery)
        for n, (status, discovery) in enumerate(pairs)
    )


# ---------------------------------------------------------------------------
# ARM translation
# ---------------------------------------------------------------------------


class TestArmTranslation:
    def test_deployment_from_arm(self) -> None:
        data = {
            "id": f"{APP_ID}/deployments/blue",
            "name": "blue",
            "sku": {"name": "S0", "capacity": 2},
            "properties": {
                "appName": "api",
                "status": "Running",
                "provisioningState": "Succeeded",
                "active": True,
                "source": {"type": "Jar", "relativePath": "resources/app.jar"},
                "deploymentSettings": {
                    "cpu": 1,
                    "memoryInGB": 2,
                    "runtimeVersion": "Java_11",
                    "jvmOptions": "-Xmx1g",
                    "environmentVariables": {"PROFILE": "prod"},
                },
                "instances": [
                    {"name": "blue-1", "status": "Running", "discoveryStatus": "UP"},
                ],
            },
        }
        state = deployment_from_arm(data)
        assert state.name == "blue"
        assert state.app_name == "api"
        assert state.active is True
        assert state.runtime_version is RuntimeVersion.JAVA_11
        assert state.scale_settings == ScaleSettings(cpu=1, memory_in_gb=2, capacity=2)
        assert state.relative_path == "resources/app.jar"
        assert state.environment_variables == {"PROFILE": "prod"}
        assert state.instances[0].discovery_status == "UP"

    def test_deployment_from_arm_tolerates_sparse_payload(self) -> None:
        state = deployment_from_arm(
            {
                "id": "x",
                "name": "default",
                "properties": {"deploymentSettings": {"runtimeVersion": "Java_21"}},
            }
        )
        assert state.runtime_version is None
        assert state.scale_settings is None
        assert state.instances == ()

    def test_app_from_arm(self) -> None:
        state = app_from_arm(
            {
                "id": APP_ID,
                "name": "api",
                "properties": {
                    "public": True,
                    "url": "https://cluster-api.azuremicroservices.io",
                    "activeDeploymentName": "default",
                },
            }
        )
        assert state.is_public
        assert state.url == "https://cluster-api.azuremicroservices.io"
        assert state.active_deployment_name == "default"

    def test_deployment_body_is_sparse(self) -> None:
        assert deployment_body(Patch({"jvm_options": "-Xmx2g"})) == {
            "properties": {"deploymentSettings": {"jvmOptions": "-Xmx2g"}}
        }

    def test_deployment_body_splits_capacity_into_sku(self) -> None:
        body = deployment_body(
            Patch(
                {
                    "scale_settings": ScaleSettings(cpu=2, memory_in_gb=4, capacity=3),
                    "runtime_version": RuntimeVersion.JAVA_17,
                    "relative_path": "resources/new.jar",
                }
            )
        )
        assert body == {
            "sku": {"capacity": 3},
            "properties": {
                "deploymentSettings": {"runtimeVersion": "Java_17", "cpu": 2, "memoryInGB": 4},
                "source": {"type": "Jar", "relativePath": "resources/new.jar"},
            },
        }

    def test_app_body(self) -> None:
        assert app_body(Patch({"is_public": False})) == {"properties": {"public": False}}


# ---------------------------------------------------------------------------
# Status classification
# ---------------------------------------------------------------------------


class TestDeploymentStatus:
    def test_active_deployment_done_when_all_instances_up(self) -> None:
        state = _deployment(active=True, instances=_instances(("Running", "UP"), ("Running", "UP")))
        assert is_deployment_done(state)
        assert classify(state) is PollResult.RUNNING

    def test_inactive_deployment_done_when_out_of_service(self) -> None:
        state = _deployment(active=False, instances=_instances(("Running", "OUT_OF_SERVICE")))
        assert is_deployment_done(state)

    def test_inactive_deployment_with_up_instances_is_not_done(self) -> None:
        state = _deployment(active=False, instances=_instances(("Running", "UP")))
        assert not is_deployment_done(state)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"status": "Allocating"},
            {"status": "Upgrading"},
            {"provisioning_state": "Updating"},
            {"instances": ()},
            {"instances": _instances(("Running", "UP"), ("Waiting", "UP"))},
            {"instances": _instances(("Pending", "UP"))},
            {"instances": _instances(("Running", "DOWN"))},
        ],
    )
    def test_in_progress(self, kwargs) -> None:
        values = {"active": True, "instances": _instances(("Running", "UP"))}
        values.update(kwargs)
        state = _deployment(**values)
        assert not is_deployment_done(state)
        assert classify(state) is PollResult.IN_PROGRESS

    def test_failed(self) -> None:
        assert classify(_deployment(status="Failed")) is PollResult.FAILED
        assert classify(_deployment(provisioning_state="Failed")) is PollResult.FAILED

    def test_missing_state_is_in_progress(self) -> None:
        assert classify(None) is PollResult.IN_PROGRESS


class TestWaitUntilReady:
    def test_polls_until_running(self) -> None:
        api = MagicMock()
        api.get.side_effect = [
            _deployment(status="Allocating"),
            _deployment(active=True, instances=_instances(("Waiting", "UNKNOWN"))),
            _deployment(active=True, instances=_instances(("Running", "UP"))),
        ]
        deployment = SpringCloudDeployment(DeploymentConfig(app_name="api"), api)
        with patch("az_toolkit.reconcile.poller.time.sleep") as mock_sleep:
            result = deployment.wait_until_ready(60, interval=2)
        assert result is PollResult.RUNNING
        assert api.get.call_count == 3
        assert mock_sleep.call_count == 2

    def test_failed_is_terminal(self) -> None:
        api = MagicMock()
        api.get.return_value = _deployment(status="Failed")
        deployment = SpringCloudDeployment(DeploymentConfig(app_name="api"), api)
        assert deployment.wait_until_ready(60) is PollResult.FAILED
        api.get.assert_called_once()

    def test_timeout_carries_last_state(self) -> None:
        api = MagicMock()
        api.get.return_value = _deployment(status="Allocating")
        deployment = SpringCloudDeployment(DeploymentConfig(app_name="api"), api)
        with pytest.raises(PollTimeoutError) as info:
            deployment.wait_until_ready(0)
        assert info.value.last_state.status == "Allocating"


# ---------------------------------------------------------------------------
# Artifact upload
# ---------------------------------------------------------------------------


class TestUploadArtifact:
    def test_creates_file_then_writes_range(self, tmp_path: Path) -> None:
        jar = tmp_path / "app.jar"
        jar.write_bytes(b"x" * 10)
        with patch("az_toolkit.azure_api.spring_cloud.requests.put") as mock_put:
            mock_put.return_value = MagicMock(status_code=201)
            upload_artifact("https://files.example/share/app.jar?sig=abc", jar)

        create_call, range_call = mock_put.call_args_list
        assert create_call.args[0] == "https://files.example/share/app.jar?sig=abc"
        assert create_call.kwargs["headers"]["x-ms-type"] == "file"
        assert create_call.kwargs["headers"]["x-ms-content-length"] == "10"
        assert range_call.args[0] == "https://files.example/share/app.jar?sig=abc&comp=range"
        assert range_call.kwargs["headers"]["x-ms-range"] == "bytes=0-9"
        assert range_call.kwargs["data"] == b"x" * 10

    def test_http_error_raises(self, tmp_path: Path) -> None:
        jar = tmp_path / "app.jar"
        jar.write_bytes(b"x")
        with patch("az_toolkit.azure_api.spring_cloud.requests.put") as mock_put:
            mock_put.return_value = MagicMock(status_code=403)
            with pytest.raises(RemoteRequestError) as info:
                upload_artifact("https://files.example/app.jar", jar)
        assert info.value.status_code == 403

    def test_connection_error_is_remote_unavailable(self, tmp_path: Path) -> None:
        jar = tmp_path / "app.jar"
        jar.write_bytes(b"x")
        with patch("az_toolkit.azure_api.spring_cloud.requests.put") as mock_put:
            mock_put.side_effect = requests.ConnectionError("reset")
            with pytest.raises(RemoteUnavailableError):
                upload_artifact("https://files.example/app.jar", jar)


# ---------------------------------------------------------------------------
# App facade
# ---------------------------------------------------------------------------


def _apply_app_patch(state, patch):
    base = state or AppState(id=APP_ID, name="api")
    return base.model_copy(update=dict(patch))


class TestSpringCloudApp:
    def test_upload_records_remote_path(self, tmp_path: Path) -> None:
        api = MagicMock()
        api.get_upload_url.return_value = ("resources/abc.jar", "https://files.example/abc.jar")
        app = SpringCloudApp(AppConfig(name="api", cluster_name="cluster"), api)
        artifact = RemotableArtifact(local_path=tmp_path / "app.jar")
        with patch("az_toolkit.entities.spring_cloud.upload_artifact") as mock_upload:
            result = app.upload_artifact(artifact)
        mock_upload.assert_called_once_with("https://files.example/abc.jar", tmp_path / "app.jar")
        assert result is artifact
        assert artifact.remote_path == "resources/abc.jar"

    def test_reconcile_creates_missing_app(self, fake_api) -> None:
        api = fake_api(None, build=_apply_app_patch)
        app = SpringCloudApp(AppConfig(name="api", cluster_name="cluster", is_public=True), api)
        state = app.reconcile().commit()
        assert api.writes == [({"is_public": True}, True)]
        assert state.is_public

    def test_create_without_changes_still_creates(self, fake_api) -> None:
        api = fake_api(None, build=_apply_app_patch)
        app = SpringCloudApp(AppConfig(name="api", cluster_name="cluster"), api)
        app.reconcile().commit()
        assert api.writes == [({}, True)]
        assert app.exists()

    def test_activate(self, fake_api) -> None:
        api = fake_api(AppState(id=APP_ID, name="api"), build=_apply_app_patch)
        app = SpringCloudApp(AppConfig(name="api", cluster_name="cluster"), api)
        state = app.activate("green")
        assert api.writes == [({"active_deployment_name": "green"}, False)]
        assert state.active_deployment_name == "green"

    def test_deployment_by_name(self) -> None:
        api = MagicMock()
        app = SpringCloudApp(AppConfig(name="api", cluster_name="cluster"), api)
        deployment = app.deployment("green")
        assert deployment.name == "green"
        assert deployment.config.app_name == "api"
        api.deployment_api.assert_called_once_with("green")
