"""Resource facades: exists / refresh / create / update / delete per resource."""

from az_toolkit.entities.spring_cloud import (  # noqa: F401
    AppBuilder,
    DeploymentBuilder,
    SpringCloudApp,
    SpringCloudDeployment,
    classify,
    is_deployment_done,
    split_scale_settings,
)
from az_toolkit.entities.sql_server import SqlServer, SqlServerBuilder  # noqa: F401
