"""Pydantic models for Azure SQL servers and their firewall rules."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr

AZURE_SERVICES_RULE_NAME = "AllowAllWindowsAzureIps"
AZURE_SERVICES_IP = "0.0.0.0"
LOCAL_MACHINE_RULE_PREFIX = "ClientIPAddress_"


def normalize_region(region: str) -> str:
    """``"East US"`` -> ``"eastus"``, matching ARM location names."""
    return region.replace(" ", "").lower()


def local_machine_rule_name(ip_address: str) -> str:
    return LOCAL_MACHINE_RULE_PREFIX + ip_address.replace(".", "-")


class FirewallRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str
    start_ip_address: str
    end_ip_address: str


class SqlServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    resource_group: str
    region: str | None = None
    administrator_login: str | None = None
    administrator_password: SecretStr | None = None
    version: str | None = None
    enable_access_from_azure_services: bool | None = None
    enable_access_from_local_machine: bool | None = None
    local_ip_address: str | None = None


class SqlServerState(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    region: str
    resource_group: str
    subscription_id: str
    kind: str | None = None
    administrator_login: str | None = None
    version: str | None = None
    state: str | None = None
    fully_qualified_domain_name: str | None = None
    type: str | None = None
    firewall_rules: tuple[FirewallRule, ...] = Field(default_factory=tuple)

    @property
    def allow_azure_services(self) -> bool:
        return any(r.name == AZURE_SERVICES_RULE_NAME for r in self.firewall_rules)

    @property
    def local_machine_rule(self) -> FirewallRule | None:
        for rule in self.firewall_rules:
            if rule.name.startswith(LOCAL_MACHINE_RULE_PREFIX):
                return rule
        return None

    @property
    def local_machine_ip(self) -> str | None:
        rule = self.local_machine_rule
        return rule.start_ip_address if rule is not None else None
