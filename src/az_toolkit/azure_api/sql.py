"""Azure SQL servers and firewall rules – Microsoft.Sql RP."""

from __future__ import annotations

import logging

from az_toolkit.azure_api._client import ArmClient
from az_toolkit.errors import NotFoundError
from az_toolkit.models import (
    AZURE_SERVICES_IP,
    AZURE_SERVICES_RULE_NAME,
    LOCAL_MACHINE_RULE_PREFIX,
    FirewallRule,
    SqlServerState,
    local_machine_rule_name,
)
from az_toolkit.reconcile.patch import Patch

logger = logging.getLogger(__name__)

SQL_API_VERSION = "2021-11-01"

_SERVER_FIELDS = ("region", "administrator_login", "administrator_password", "version")


def _resource_group_from_id(resource_id: str) -> str:
    parts = resource_id.split("/")
    return parts[[p.lower() for p in parts].index("resourcegroups") + 1]


def _subscription_from_id(resource_id: str) -> str:
    parts = resource_id.split("/")
    return parts[[p.lower() for p in parts].index("subscriptions") + 1]


def firewall_rule_from_arm(data: dict) -> FirewallRule:
    props = data.get("properties") or {}
    return FirewallRule(
        id=data.get("id"),
        name=data["name"],
        start_ip_address=props.get("startIpAddress", ""),
        end_ip_address=props.get("endIpAddress", ""),
    )


def sql_server_from_arm(data: dict, firewall_rules: list[FirewallRule] | None = None) -> SqlServerState:
    props = data.get("properties") or {}
    return SqlServerState(
        id=data["id"],
        name=data["name"],
        region=data.get("location", ""),
        resource_group=_resource_group_from_id(data["id"]),
        subscription_id=_subscription_from_id(data["id"]),
        kind=data.get("kind"),
        administrator_login=props.get("administratorLogin"),
        version=props.get("version"),
        state=props.get("state"),
        fully_qualified_domain_name=props.get("fullyQualifiedDomainName"),
        type=data.get("type"),
        firewall_rules=tuple(firewall_rules or ()),
    )


def sql_server_body(patch: Patch) -> dict:
    body: dict = {}
    props: dict = {}
    if "region" in patch:
        body["location"] = patch["region"]
    if "administrator_login" in patch:
        props["administratorLogin"] = patch["administrator_login"]
    if "administrator_password" in patch:
        props["administratorLoginPassword"] = patch["administrator_password"].get_secret_value()
    if "version" in patch:
        props["version"] = patch["version"]
    if props:
        body["properties"] = props
    return body


class SqlServerApi:
    """CRUD over one SQL server, including the firewall rules it manages."""

    def __init__(
        self,
        client: ArmClient,
        subscription_id: str,
        resource_group: str,
        server_name: str,
    ) -> None:
        self.client = client
        self.subscription_id = subscription_id
        self.resource_group = resource_group
        self.server_name = server_name
        self.path = (
            f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Sql/servers/{server_name}"
        )

    def get(self) -> SqlServerState:
        data = self.client.get(self.path, SQL_API_VERSION)
        return sql_server_from_arm(data, self.list_firewall_rules())

    def create_or_update(self, patch: Patch, *, create: bool) -> SqlServerState:
        """Write server properties, then reconcile the managed firewall rules."""
        server_patch = patch.subset(_SERVER_FIELDS)
        if create:
            self.client.put(self.path, SQL_API_VERSION, sql_server_body(server_patch))
        elif server_patch:
            self.client.patch(self.path, SQL_API_VERSION, sql_server_body(server_patch))

        if "allow_azure_services" in patch:
            if patch["allow_azure_services"]:
                self.put_firewall_rule(AZURE_SERVICES_RULE_NAME, AZURE_SERVICES_IP, AZURE_SERVICES_IP)
            else:
                self.delete_firewall_rule(AZURE_SERVICES_RULE_NAME)

        if "local_machine_ip" in patch:
            for rule in self.list_firewall_rules():
                if rule.name.startswith(LOCAL_MACHINE_RULE_PREFIX):
                    self.delete_firewall_rule(rule.name)
            ip_address = patch["local_machine_ip"]
            if ip_address:
                self.put_firewall_rule(local_machine_rule_name(ip_address), ip_address, ip_address)
        return self.get()

    def delete(self) -> None:
        self.client.delete(self.path, SQL_API_VERSION)

    def list_firewall_rules(self) -> list[FirewallRule]:
        rules = self.client.list(f"{self.path}/firewallRules", SQL_API_VERSION)
        return [firewall_rule_from_arm(r) for r in rules]

    def put_firewall_rule(self, name: str, start_ip: str, end_ip: str) -> FirewallRule:
        logger.debug("Setting firewall rule %s (%s - %s) on %s", name, start_ip, end_ip, self.server_name)
        data = self.client.put(
            f"{self.path}/firewallRules/{name}",
            SQL_API_VERSION,
            {"properties": {"startIpAddress": start_ip, "endIpAddress": end_ip}},
        )
        return firewall_rule_from_arm(data)

    def delete_firewall_rule(self, name: str) -> None:
        try:
            self.client.delete(f"{self.path}/firewallRules/{name}", SQL_API_VERSION)
        except NotFoundError:
            logger.debug("Firewall rule %s already absent on %s", name, self.server_name)
