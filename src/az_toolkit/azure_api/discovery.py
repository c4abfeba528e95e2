"""Subscription and Spring Cloud cluster discovery."""

from __future__ import annotations

import logging

from az_toolkit.azure_api._client import ArmClient
from az_toolkit.errors import ConfigurationError

logger = logging.getLogger(__name__)

SUBSCRIPTION_API_VERSION = "2022-12-01"
SPRING_API_VERSION = "2020-07-01"


def list_subscriptions(client: ArmClient) -> list[dict]:
    """Return enabled subscriptions as ``[{"id": ..., "name": ...}, ...]``."""
    all_subs = client.list("/subscriptions", SUBSCRIPTION_API_VERSION)
    subs = [
        {"id": s["subscriptionId"], "name": s["displayName"]}
        for s in all_subs
        if s.get("state") == "Enabled"
    ]
    return sorted(subs, key=lambda x: x["name"].lower())


def select_subscription(client: ArmClient, subscription_id: str | None = None) -> str:
    """Return *subscription_id* if accessible, else the only enabled one.

    Raises :class:`ConfigurationError` when the choice is ambiguous or the
    requested subscription is not available to the current credential.
    """
    subs = list_subscriptions(client)
    if subscription_id:
        if not any(s["id"] == subscription_id for s in subs):
            raise ConfigurationError(
                f"Subscription {subscription_id} is not available to the current account"
            )
        return subscription_id
    if len(subs) == 1:
        return str(subs[0]["id"])
    if not subs:
        raise ConfigurationError("No enabled subscriptions found")
    raise ConfigurationError(
        "Multiple subscriptions found, please specify one: "
        + ", ".join(f"{s['name']} ({s['id']})" for s in subs)
    )


def find_spring_cluster_resource_group(client: ArmClient, subscription_id: str, cluster_name: str) -> str:
    """Return the resource group of the Spring Cloud cluster named *cluster_name*."""
    clusters = client.list(
        f"/subscriptions/{subscription_id}/providers/Microsoft.AppPlatform/Spring",
        SPRING_API_VERSION,
    )
    for cluster in clusters:
        if cluster.get("name", "").lower() == cluster_name.lower():
            # /subscriptions/{sub}/resourceGroups/{rg}/providers/...
            parts = cluster["id"].split("/")
            resource_group = parts[[p.lower() for p in parts].index("resourcegroups") + 1]
            logger.debug("Cluster %s found in resource group %s", cluster_name, resource_group)
            return resource_group
    raise ConfigurationError(
        f"Azure Spring Cloud cluster '{cluster_name}' not found in subscription {subscription_id}"
    )
