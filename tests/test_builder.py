"""Tests for the reconciling builder, exercised through deployment builders."""

from unittest.mock import MagicMock

import pytest

from az_toolkit.entities import SpringCloudDeployment
from az_toolkit.errors import AlreadyCommittedError, ConfigurationError, RemoteRequestError
from az_toolkit.models import (
    DeploymentConfig,
    DeploymentState,
    RemotableArtifact,
    RuntimeVersion,
    ScaleSettings,
)
from az_toolkit.reconcile import BuilderState

DEPLOYMENT_ID = (
    "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.AppPlatform"
    "/Spring/cluster/apps/api/deployments/default"
)


def _apply_patch(state, patch):
    base = state or DeploymentState(id=DEPLOYMENT_ID, name="default", app_name="api")
    return base.model_copy(update=dict(patch))


def _existing_state(**kwargs) -> DeploymentState:
    values = {
        "id": DEPLOYMENT_ID,
        "name": "default",
        "app_name": "api",
        "runtime_version": RuntimeVersion.JAVA_11,
        "jvm_options": "-Xmx1g",
        "environment_variables": {"PROFILE": "prod"},
        "scale_settings": ScaleSettings(cpu=1, memory_in_gb=2, capacity=1),
        "relative_path": "resources/old.jar",
    }
    values.update(kwargs)
    return DeploymentState(**values)


@pytest.fixture()
def api(fake_api):
    return fake_api(_existing_state(), build=_apply_patch)


@pytest.fixture()
def deployment(api):
    return SpringCloudDeployment(DeploymentConfig(name="default", app_name="api"), api)


class TestNoOpConfiguration:
    def test_equal_values_yield_no_patch_entries(self, deployment) -> None:
        builder = (
            deployment.update()
            .config_runtime_version("11")
            .config_jvm_options("-Xmx1g")
            .config_environment_variables({"PROFILE": "prod"})
            .config_scale_settings(ScaleSettings(cpu=1, memory_in_gb=2, capacity=1))
        )
        assert builder.patch.is_empty
        assert builder.state is BuilderState.EMPTY

    def test_empty_patch_on_existing_resource_issues_no_write(self, deployment, api) -> None:
        builder = deployment.update().config_jvm_options("-Xmx1g")
        result = builder.commit()
        assert api.writes == []
        assert api.starts == 0
        assert result == api.state
        assert builder.state is BuilderState.COMMITTED
        assert not builder.written

    def test_repeated_calls_are_idempotent(self, deployment) -> None:
        builder = deployment.update().config_jvm_options("-Xmx2g").config_jvm_options("-Xmx2g")
        assert dict(builder.patch) == {"jvm_options": "-Xmx2g"}

    def test_unspecified_never_regresses_queued_change(self, deployment) -> None:
        builder = deployment.update().config_jvm_options("-Xmx2g").config_jvm_options("   ")
        builder.config_environment_variables({"A": "1"}).config_environment_variables({})
        assert dict(builder.patch) == {"jvm_options": "-Xmx2g", "environment_variables": {"A": "1"}}

    def test_setting_back_to_remote_value_drops_entry(self, deployment) -> None:
        builder = deployment.update().config_jvm_options("-Xmx2g").config_jvm_options("-Xmx1g")
        assert builder.patch.is_empty


class TestCommutativity:
    def test_call_order_does_not_matter(self, fake_api) -> None:
        def build(order):
            dep = SpringCloudDeployment(
                DeploymentConfig(app_name="api"), fake_api(_existing_state(), build=_apply_patch)
            )
            builder = dep.update()
            calls = {
                "jvm": lambda: builder.config_jvm_options("-Xmx4g"),
                "env": lambda: builder.config_environment_variables({"PROFILE": "dev"}),
                "runtime": lambda: builder.config_runtime_version("Java_17"),
                "jvm_again": lambda: builder.config_jvm_options("-Xmx4g"),
            }
            for name in order:
                calls[name]()
            return dict(builder.patch)

        first = build(["jvm", "env", "runtime", "jvm_again"])
        second = build(["runtime", "jvm_again", "env", "jvm"])
        assert first == second
        assert first == {
            "jvm_options": "-Xmx4g",
            "environment_variables": {"PROFILE": "dev"},
            "runtime_version": RuntimeVersion.JAVA_17,
        }


class TestCommit:
    def test_commit_twice_fails(self, deployment) -> None:
        builder = deployment.update().config_jvm_options("-Xmx2g")
        builder.commit()
        with pytest.raises(AlreadyCommittedError):
            builder.commit()

    def test_config_after_commit_fails(self, deployment) -> None:
        builder = deployment.update()
        builder.commit()
        with pytest.raises(AlreadyCommittedError):
            builder.config_jvm_options("-Xmx2g")

    def test_update_writes_only_patched_fields_and_starts(self, deployment, api) -> None:
        builder = deployment.update().config_jvm_options("-Xmx2g").config_runtime_version("8")
        state = builder.commit()
        assert api.writes == [
            ({"jvm_options": "-Xmx2g", "runtime_version": RuntimeVersion.JAVA_8}, False)
        ]
        assert api.starts == 1
        assert state.jvm_options == "-Xmx2g"
        assert deployment.remote.jvm_options == "-Xmx2g"

    def test_no_start_when_disabled(self, deployment, api) -> None:
        deployment.update(start=False).config_jvm_options("-Xmx2g").commit()
        assert api.starts == 0

    def test_remote_failure_keeps_builder_dirty(self, deployment, api) -> None:
        api.fail_next = RemoteRequestError("boom", status_code=500)
        builder = deployment.update().config_jvm_options("-Xmx2g")
        with pytest.raises(RemoteRequestError):
            builder.commit()
        assert builder.state is BuilderState.DIRTY
        assert deployment.remote.jvm_options == "-Xmx1g"

        builder.commit()
        assert builder.state is BuilderState.COMMITTED
        assert api.writes == [({"jvm_options": "-Xmx2g"}, False)]

    def test_invalid_runtime_version_is_configuration_error(self, deployment) -> None:
        with pytest.raises(ConfigurationError, match="runtime version"):
            deployment.update().config_runtime_version("Java_99")

    def test_failed_start_is_retried_without_rewriting(self, deployment, api) -> None:
        api.start = MagicMock(side_effect=[RemoteRequestError("start failed", status_code=409), None])
        builder = deployment.update().config_jvm_options("-Xmx2g")
        with pytest.raises(RemoteRequestError):
            builder.commit()
        assert builder.state is BuilderState.DIRTY
        assert builder.written

        state = builder.commit()
        assert builder.state is BuilderState.COMMITTED
        assert api.writes == [({"jvm_options": "-Xmx2g"}, False)]
        assert api.start.call_count == 2
        assert state.jvm_options == "-Xmx2g"


class TestScaleSettingsWorkaround:
    def test_scale_written_separately_and_first(self, deployment, api) -> None:
        (
            deployment.update()
            .config_scale_settings(ScaleSettings(capacity=3))
            .config_runtime_version("17")
            .commit()
        )
        assert api.writes == [
            ({"scale_settings": ScaleSettings(cpu=1, memory_in_gb=2, capacity=3)}, False),
            ({"runtime_version": RuntimeVersion.JAVA_17}, False),
        ]

    def test_scale_only_issues_single_write_without_restart(self, deployment, api) -> None:
        deployment.scale(ScaleSettings(cpu=2))
        assert api.writes == [
            ({"scale_settings": ScaleSettings(cpu=2, memory_in_gb=2, capacity=1)}, False)
        ]
        assert api.starts == 0

    def test_failure_after_scale_keeps_only_remaining_fields(self, deployment, api) -> None:
        builder = (
            deployment.update()
            .config_scale_settings(ScaleSettings(capacity=3))
            .config_jvm_options("-Xmx2g")
        )
        original = api.create_or_update
        calls = {"n": 0}

        def flaky(patch, *, create):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RemoteRequestError("boom", status_code=500)
            return original(patch, create=create)

        api.create_or_update = flaky
        with pytest.raises(RemoteRequestError):
            builder.commit()
        assert dict(builder.patch) == {"jvm_options": "-Xmx2g"}
        builder.commit()
        assert [w[0] for w in api.writes] == [
            {"scale_settings": ScaleSettings(cpu=1, memory_in_gb=2, capacity=3)},
            {"jvm_options": "-Xmx2g"},
        ]


class TestCreate:
    def test_create_requires_artifact(self, fake_api) -> None:
        api = fake_api(None, build=_apply_patch)
        dep = SpringCloudDeployment(DeploymentConfig(app_name="api"), api)
        with pytest.raises(ConfigurationError) as info:
            dep.create().config_jvm_options("-Xmx1g").commit()
        assert info.value.missing == ["artifact"]
        assert api.writes == []

    def test_create_sends_everything_in_one_call(self, fake_api) -> None:
        api = fake_api(None, build=_apply_patch)
        dep = SpringCloudDeployment(DeploymentConfig(app_name="api"), api)
        artifact = RemotableArtifact(local_path="api.jar", remote_path="resources/new.jar")
        state = (
            dep.create()
            .config_scale_settings(ScaleSettings(cpu=1, capacity=2))
            .config_artifact(artifact)
            .commit()
        )
        assert api.writes == [
            (
                {
                    "scale_settings": ScaleSettings(cpu=1, capacity=2),
                    "relative_path": "resources/new.jar",
                },
                True,
            )
        ]
        assert api.starts == 1
        assert state.relative_path == "resources/new.jar"

    def test_artifact_path_resolved_at_commit(self, deployment, api) -> None:
        artifact = RemotableArtifact(local_path="api.jar")
        builder = deployment.update().config_artifact(artifact)
        assert builder.patch.is_empty
        artifact.remote_path = "resources/new.jar"
        builder.commit()
        assert api.writes == [({"relative_path": "resources/new.jar"}, False)]

    def test_unspecified_artifact_keeps_queued_artifact(self, deployment, api) -> None:
        pending = RemotableArtifact(local_path="api.jar")
        builder = deployment.update().config_artifact(pending).config_artifact(None)
        pending.remote_path = "resources/new.jar"
        builder.commit()
        assert api.writes == [({"relative_path": "resources/new.jar"}, False)]

    def test_reconcile_applies_whole_config(self, fake_api) -> None:
        api = fake_api(_existing_state(), build=_apply_patch)
        config = DeploymentConfig(
            app_name="api",
            runtime_version="11",
            jvm_options="-Xmx1g",
            environment_variables={"PROFILE": "staging"},
            scale_settings=ScaleSettings(capacity=1),
        )
        builder = SpringCloudDeployment(config, api).reconcile()
        assert dict(builder.patch) == {"environment_variables": {"PROFILE": "staging"}}
