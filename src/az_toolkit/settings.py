"""Toolkit settings loaded from environment variables and an optional TOML file."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsError

from az_toolkit.errors import ConfigurationError

logger = logging.getLogger(__name__)


class DeploymentSettings(BaseModel):
    name: str = "default"
    cpu: int | None = None
    memory_in_gb: int | None = None
    instance_count: int | None = None
    jvm_options: str | None = None
    environment: dict[str, str] | None = None
    artifact: Path | None = None


class SqlServerSettings(BaseModel):
    name: str | None = None
    resource_group: str | None = None
    region: str | None = None
    administrator_login: str | None = None
    administrator_password: SecretStr | None = None
    version: str | None = None
    enable_access_from_azure_services: bool | None = None
    enable_access_from_local_machine: bool | None = None
    local_ip_address: str | None = None


class ToolkitSettings(BaseSettings):
    """Configuration for az-toolkit operations.

    Values are read from ``AZ_TOOLKIT_*`` environment variables
    (case-insensitive, ``__`` separates nested keys such as
    ``AZ_TOOLKIT_DEPLOYMENT__CPU``) and optionally from a ``.env`` file in
    the working directory.  Explicit keyword arguments win over both.
    """

    auth_type: str = "auto"
    environment: str = "azure"
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None
    certificate_path: str | None = None

    subscription_id: str | None = None
    resource_group: str | None = None
    cluster_name: str | None = None
    app_name: str | None = None
    runtime_version: str | None = None
    is_public: bool | None = None

    deployment: DeploymentSettings = DeploymentSettings()
    sql_server: SqlServerSettings = SqlServerSettings()

    telemetry_allowed: bool = True
    http_proxy_host: str | None = None
    http_proxy_port: int | None = None

    wait_until_ready: bool = True
    deploy_timeout: int = 600

    model_config = {
        "env_prefix": "AZ_TOOLKIT_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def proxy(self) -> str | None:
        if not self.http_proxy_host:
            return None
        port = self.http_proxy_port or 80
        return f"http://{self.http_proxy_host}:{port}"


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into *base*, skipping ``None`` values."""
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict):
            nested = _merge(merged.get(key) or {}, value)
            if nested:
                merged[key] = nested
        else:
            merged[key] = value
    return merged


def load_settings(config_file: Path | None = None, **overrides: Any) -> ToolkitSettings:
    """Build settings from env, then *config_file* (TOML), then *overrides*.

    Invalid values from any source raise :class:`ConfigurationError` naming
    the offending keys.
    """
    data: dict[str, Any] = {}
    if config_file is not None:
        try:
            with config_file.open("rb") as fh:
                data = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid configuration file {config_file}: {exc}") from exc
        logger.debug("Loaded configuration from %s", config_file)
    data = _merge(data, overrides)
    try:
        return ToolkitSettings(**data)
    except ValidationError as exc:
        errors = exc.errors()
        keys = [".".join(str(part) for part in e["loc"]) for e in errors]
        details = "; ".join(f"{key}: {e['msg']}" for key, e in zip(keys, errors, strict=True))
        raise ConfigurationError(f"Invalid configuration: {details}", missing=keys) from exc
    except SettingsError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
