"""Azure Resource Manager REST helpers.

Each resource API is bound to one resource identity and exposes
``get`` / ``create_or_update`` / ``delete``; payloads are translated
between ARM JSON and the models in :mod:`az_toolkit.models`.

This package re-exports the public names so that callers can use
``from az_toolkit.azure_api import X``.
"""

import requests as requests  # noqa: F401  # re-export for mock patching

# -- Client & pagination -----------------------------------------------------
from az_toolkit.azure_api._client import ArmClient  # noqa: F401
from az_toolkit.azure_api._pagination import _paginate  # noqa: F401

# -- Discovery ---------------------------------------------------------------
from az_toolkit.azure_api.discovery import (  # noqa: F401
    find_spring_cluster_resource_group,
    list_subscriptions,
    select_subscription,
)

# -- Spring Cloud ------------------------------------------------------------
from az_toolkit.azure_api.spring_cloud import (  # noqa: F401
    SPRING_API_VERSION,
    SpringCloudAppApi,
    SpringCloudDeploymentApi,
    app_body,
    app_from_arm,
    deployment_body,
    deployment_from_arm,
    upload_artifact,
)

# -- SQL ---------------------------------------------------------------------
from az_toolkit.azure_api.sql import (  # noqa: F401
    SQL_API_VERSION,
    SqlServerApi,
    firewall_rule_from_arm,
    sql_server_body,
    sql_server_from_arm,
)
