"""Desired-configuration and remote-state models."""

from az_toolkit.models.spring_cloud import (  # noqa: F401
    AppConfig,
    AppState,
    DeploymentConfig,
    DeploymentInstance,
    DeploymentState,
    DeploymentStatus,
    PollResult,
    ProvisioningState,
    RemotableArtifact,
    RuntimeVersion,
    ScaleSettings,
)
from az_toolkit.models.sql_server import (  # noqa: F401
    AZURE_SERVICES_IP,
    AZURE_SERVICES_RULE_NAME,
    LOCAL_MACHINE_RULE_PREFIX,
    FirewallRule,
    SqlServerConfig,
    SqlServerState,
    local_machine_rule_name,
    normalize_region,
)
