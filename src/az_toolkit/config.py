"""Turn loosely-typed settings into validated desired configurations."""

from __future__ import annotations

from az_toolkit.errors import ConfigurationError
from az_toolkit.models import (
    AppConfig,
    DeploymentConfig,
    RuntimeVersion,
    ScaleSettings,
    SqlServerConfig,
)
from az_toolkit.settings import ToolkitSettings


def _missing(values: dict[str, object]) -> ConfigurationError:
    """Build the error listing every blank entry of *values*."""
    missing = [name for name, value in values.items() if value is None or value == ""]
    return ConfigurationError(
        f"Missing required configuration: {', '.join(missing)}", missing=missing
    )


def parse_app_config(settings: ToolkitSettings) -> AppConfig:
    cluster_name, app_name = settings.cluster_name, settings.app_name
    if not cluster_name or not app_name:
        raise _missing({"cluster_name": cluster_name, "app_name": app_name})
    return AppConfig(
        name=app_name,
        cluster_name=cluster_name,
        is_public=settings.is_public,
    )


def parse_deployment_config(settings: ToolkitSettings, *, require_artifact: bool = True) -> DeploymentConfig:
    deployment = settings.deployment
    app_name = settings.app_name
    if not app_name or (require_artifact and deployment.artifact is None):
        required: dict[str, object] = {"app_name": app_name}
        if require_artifact:
            required["deployment.artifact"] = deployment.artifact
        raise _missing(required)
    if deployment.artifact is not None and require_artifact and not deployment.artifact.is_file():
        raise ConfigurationError(f"Artifact {deployment.artifact} does not exist")
    if settings.runtime_version:
        # Validate early so a typo fails before anything is written remotely.
        RuntimeVersion.from_string(settings.runtime_version)
    for name in ("cpu", "memory_in_gb", "instance_count"):
        value = getattr(deployment, name)
        if value is not None and value < 1:
            raise ConfigurationError(f"deployment.{name} must be a positive integer, got {value}")
    scale = ScaleSettings(
        cpu=deployment.cpu,
        memory_in_gb=deployment.memory_in_gb,
        capacity=deployment.instance_count,
    )
    return DeploymentConfig(
        name=deployment.name,
        app_name=app_name,
        runtime_version=settings.runtime_version,
        jvm_options=deployment.jvm_options,
        environment_variables=deployment.environment,
        scale_settings=None if scale.is_empty() else scale,
        artifact_path=deployment.artifact,
    )


def parse_sql_server_config(settings: ToolkitSettings) -> SqlServerConfig:
    sql = settings.sql_server
    name = sql.name
    resource_group = sql.resource_group or settings.resource_group
    if not name or not resource_group:
        raise _missing({"sql_server.name": name, "sql_server.resource_group": resource_group})
    return SqlServerConfig(
        name=name,
        resource_group=resource_group,
        region=sql.region,
        administrator_login=sql.administrator_login,
        administrator_password=sql.administrator_password,
        version=sql.version,
        enable_access_from_azure_services=sql.enable_access_from_azure_services,
        enable_access_from_local_machine=sql.enable_access_from_local_machine,
        local_ip_address=sql.local_ip_address,
    )
