"""SQL server facade built on the reconciling builder."""

from __future__ import annotations

import logging
from typing import Self

from pydantic import SecretStr

from az_toolkit.azure_api.sql import SqlServerApi
from az_toolkit.errors import ConfigurationError
from az_toolkit.models import FirewallRule, SqlServerConfig, SqlServerState, normalize_region
from az_toolkit.reconcile import (
    Change,
    ChangeKind,
    ReconcilingBuilder,
    RemoteEntityCache,
    diff_clearable,
    diff_value,
)

logger = logging.getLogger(__name__)


class SqlServerBuilder(ReconcilingBuilder[SqlServerState]):
    kind = "SQL server"

    def config_region(self, region: str | None) -> Self:
        remote = self.remote
        return self._apply(
            "region",
            diff_value(region, remote.region if remote else None, normalize=normalize_region),
        )

    def config_administrator_login(self, login: str | None) -> Self:
        remote = self.remote
        return self._apply(
            "administrator_login",
            diff_value(login, remote.administrator_login if remote else None),
        )

    def config_administrator_password(self, password: SecretStr | str | None) -> Self:
        """Only used on creation: ARM never returns the password to diff against."""
        if self.remote is not None:
            logger.debug("Ignoring administrator password for existing SQL server %s", self.name)
            return self
        if isinstance(password, str):
            password = SecretStr(password) if password.strip() else None
        if password is None:
            return self
        return self._apply("administrator_password", Change(ChangeKind.CHANGED, password))

    def config_version(self, version: str | None) -> Self:
        remote = self.remote
        return self._apply("version", diff_value(version, remote.version if remote else None))

    def config_access_from_azure_services(self, enabled: bool | None) -> Self:
        remote = self.remote
        current = remote.allow_azure_services if remote else False
        return self._apply("allow_azure_services", diff_value(enabled, current))

    def config_access_from_local_machine(self, enabled: bool | None, ip_address: str | None = None) -> Self:
        if enabled and not (ip_address and ip_address.strip()):
            raise ConfigurationError(
                "An IP address is required to enable access from the local machine",
                missing=["local_ip_address"],
            )
        remote = self.remote
        current = remote.local_machine_ip if remote else None
        return self._apply(
            "local_machine_ip",
            diff_clearable(ip_address.strip() if ip_address else None, current, enabled=enabled),
        )

    def _required_for_create(self) -> dict[str, object]:
        return {
            "region": self._patch.get("region"),
            "administrator_login": self._patch.get("administrator_login"),
            "administrator_password": self._patch.get("administrator_password"),
        }


class SqlServer:
    """An Azure SQL server identified by resource group and name."""

    def __init__(self, config: SqlServerConfig, api: SqlServerApi) -> None:
        self.config = config
        self.api = api
        self.cache: RemoteEntityCache[SqlServerConfig, SqlServerState] = RemoteEntityCache(
            config, api.get
        )

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def remote(self) -> SqlServerState | None:
        return self.cache.remote

    def exists(self) -> bool:
        return self.cache.exists()

    def entity(self) -> SqlServerConfig | SqlServerState:
        return self.cache.entity()

    def refresh(self) -> Self:
        self.cache.refresh()
        return self

    def delete(self) -> None:
        self.api.delete()
        self.cache.replace(None)

    def firewall_rules(self) -> list[FirewallRule]:
        return self.api.list_firewall_rules()

    def _builder(self) -> SqlServerBuilder:
        return SqlServerBuilder(self.cache, self.api, self.name)

    def create(self) -> SqlServerBuilder:
        """Builder pre-configured with every field of :attr:`config`."""
        config = self.config
        return (
            self._builder()
            .config_region(config.region)
            .config_administrator_login(config.administrator_login)
            .config_administrator_password(config.administrator_password)
            .config_version(config.version)
            .config_access_from_azure_services(config.enable_access_from_azure_services)
            .config_access_from_local_machine(
                config.enable_access_from_local_machine, config.local_ip_address
            )
        )

    def update(self) -> SqlServerBuilder:
        """Builder pre-configured with the firewall access settings of :attr:`config`."""
        config = self.config
        return (
            self._builder()
            .config_access_from_azure_services(config.enable_access_from_azure_services)
            .config_access_from_local_machine(
                config.enable_access_from_local_machine, config.local_ip_address
            )
        )
