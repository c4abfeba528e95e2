"""Unified CLI for az-toolkit.

Provides three subcommands:
    az-toolkit deploy      – deploy an artifact to Azure Spring Cloud
    az-toolkit scale       – scale an existing Spring Cloud deployment
    az-toolkit sql-server  – create or update an Azure SQL server

Every subcommand runs inside an :class:`~az_toolkit.telemetry.OperationTracker`
so that start, success and failure are reported to the telemetry sink.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial
from pathlib import Path
from typing import Any

import click

from az_toolkit import __version__
from az_toolkit.auth import AzureCredentialWrapper, login
from az_toolkit.azure_api import (
    ArmClient,
    SpringCloudAppApi,
    SqlServerApi,
    find_spring_cluster_resource_group,
    select_subscription,
)
from az_toolkit.config import parse_app_config, parse_deployment_config, parse_sql_server_config
from az_toolkit.entities import SpringCloudApp, SqlServer
from az_toolkit.errors import ConfigurationError, PollTimeoutError, ToolkitError
from az_toolkit.models import PollResult, RemotableArtifact
from az_toolkit.settings import ToolkitSettings, load_settings
from az_toolkit.telemetry import (
    LoggingTelemetry,
    NoopTelemetry,
    OperationTracker,
    Telemetry,
    user_agent,
)

logger = logging.getLogger(__name__)


def _setup_logging(level: int = logging.WARNING) -> None:
    """Configure the root ``az_toolkit`` logger."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s - %(message)s"))
    app_logger = logging.getLogger("az_toolkit")
    app_logger.handlers = [handler]
    app_logger.setLevel(level)
    app_logger.propagate = False

    # Silence noisy third-party loggers
    logging.getLogger("azure").setLevel(logging.WARNING)


def _telemetry(settings: ToolkitSettings | None) -> Telemetry:
    # Settings that failed to load fall back to the default, which is allowed.
    if settings is not None and not settings.telemetry_allowed:
        return NoopTelemetry()
    return LoggingTelemetry()


def _login(settings: ToolkitSettings) -> AzureCredentialWrapper:
    credential = login(
        settings.auth_type,
        environment=settings.environment,
        tenant_id=settings.tenant_id,
        client_id=settings.client_id,
        client_secret=(
            settings.client_secret.get_secret_value() if settings.client_secret else None
        ),
        certificate_path=settings.certificate_path,
    )
    for line in credential.describe():
        click.echo(line)
    return credential


def _client(settings: ToolkitSettings, telemetry: Telemetry) -> tuple[ArmClient, str]:
    """Authenticate and return an ARM client with the selected subscription."""
    client = ArmClient(_login(settings), user_agent=user_agent(telemetry), proxy=settings.proxy)
    subscription_id = select_subscription(client, settings.subscription_id)
    click.echo(f"Subscription: {click.style(subscription_id, fg='cyan')}")
    return client, subscription_id


def _run(operation: str, load: Callable[[], ToolkitSettings], action: Any) -> None:
    """Load settings and run *action(settings, tracker, telemetry)* under tracking.

    Configuration errors raised while loading are reported through the
    tracker like any other failure.
    """
    settings: ToolkitSettings | None = None
    load_error: ConfigurationError | None = None
    try:
        settings = load()
    except ConfigurationError as exc:
        load_error = exc
    telemetry = _telemetry(settings)
    try:
        with OperationTracker(operation, telemetry) as tracker:
            if settings is None:
                raise load_error or ConfigurationError("Invalid configuration")
            action(settings, tracker, telemetry)
    except ToolkitError as exc:
        raise click.ClickException(str(exc)) from exc


def _spring_app(
    settings: ToolkitSettings, client: ArmClient, subscription_id: str
) -> SpringCloudApp:
    app_config = parse_app_config(settings)
    resource_group = settings.resource_group or find_spring_cluster_resource_group(
        client, subscription_id, app_config.cluster_name
    )
    api = SpringCloudAppApi(
        client, subscription_id, resource_group, app_config.cluster_name, app_config.name
    )
    return SpringCloudApp(app_config, api)


@click.group()
@click.version_option(version=__version__, prog_name="az-toolkit")
def cli() -> None:
    """Azure resource-management toolkit."""


_verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose logging.",
)
_config_option = click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML configuration file.",
)


@cli.command()
@_config_option
@click.option("--subscription-id", default=None, help="Azure subscription ID.")
@click.option("--cluster-name", default=None, help="Azure Spring Cloud cluster name.")
@click.option("--app-name", default=None, help="App name.")
@click.option("--deployment-name", default=None, help="Deployment name.")
@click.option(
    "--artifact",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Jar file to deploy.",
)
@click.option("--runtime-version", default=None, help="Java runtime version (e.g. 11).")
@click.option("--public/--private", "is_public", default=None, help="Expose the app publicly.")
@click.option("--no-wait", is_flag=True, default=False, help="Don't wait for the deployment.")
@click.option("--timeout", type=int, default=None, help="Seconds to wait for the deployment.")
@_verbose_option
def deploy(
    config_file: Path | None,
    subscription_id: str | None,
    cluster_name: str | None,
    app_name: str | None,
    deployment_name: str | None,
    artifact: Path | None,
    runtime_version: str | None,
    is_public: bool | None,
    no_wait: bool,
    timeout: int | None,
    verbose: bool,
) -> None:
    """Deploy an artifact to an Azure Spring Cloud app."""
    _setup_logging(level=logging.INFO if verbose else logging.WARNING)
    load = partial(
        load_settings,
        config_file,
        subscription_id=subscription_id,
        cluster_name=cluster_name,
        app_name=app_name,
        runtime_version=runtime_version,
        is_public=is_public,
        wait_until_ready=False if no_wait else None,
        deploy_timeout=timeout,
        deployment={"name": deployment_name, "artifact": artifact},
    )

    def _deploy(
        settings: ToolkitSettings, tracker: OperationTracker, telemetry: Telemetry
    ) -> None:
        deployment_config = parse_deployment_config(settings)
        client, sub_id = _client(settings, telemetry)
        app = _spring_app(settings, client, sub_id)
        scale = deployment_config.scale_settings
        tracker.trace(
            subscriptionId=sub_id,
            runtimeVersion=deployment_config.runtime_version,
            public=settings.is_public,
            cpu=scale.cpu if scale else None,
            memory=scale.memory_in_gb if scale else None,
            instanceCount=scale.capacity if scale else None,
            jvmOptions=bool(deployment_config.jvm_options),
        )

        app.reconcile().commit()
        deployment = app.deployment(deployment_config)
        artifact_path = deployment_config.artifact_path
        if artifact_path is None:
            raise ConfigurationError("Missing required configuration: deployment.artifact")
        remotable = RemotableArtifact(local_path=artifact_path)
        builder = deployment.reconcile(remotable)
        app.upload_artifact(remotable)
        builder.commit()

        app_state = app.refresh().remote
        if app_state is not None and not app_state.active_deployment_name:
            app.activate(deployment.name)
            app_state = app.remote
        click.echo(
            f"Deployment({click.style(deployment.name, fg='cyan')}) of "
            f"app({click.style(app.name, fg='cyan')}) is committed."
        )

        if settings.wait_until_ready:
            try:
                result = deployment.wait_until_ready(settings.deploy_timeout)
            except PollTimeoutError:
                click.echo(
                    click.style(
                        f"Deployment is not ready after {settings.deploy_timeout}s, "
                        "please check its status in the Azure portal.",
                        fg="yellow",
                    )
                )
            else:
                if result is PollResult.FAILED:
                    raise ToolkitError(f"Deployment({deployment.name}) failed to start")
                click.echo(click.style("Deployment is running.", fg="green"))
        if app_state is not None and app_state.is_public and app_state.url:
            click.echo(f"Application url: {click.style(app_state.url, fg='cyan', bold=True)}")

    _run("DeployOperation", load, _deploy)


@cli.command()
@_config_option
@click.option("--subscription-id", default=None, help="Azure subscription ID.")
@click.option("--cluster-name", default=None, help="Azure Spring Cloud cluster name.")
@click.option("--app-name", default=None, help="App name.")
@click.option("--deployment-name", default=None, help="Deployment name.")
@click.option("--cpu", type=int, default=None, help="CPU cores per instance.")
@click.option("--memory", type=int, default=None, help="Memory in GB per instance.")
@click.option("--instance-count", type=int, default=None, help="Number of instances.")
@_verbose_option
def scale(
    config_file: Path | None,
    subscription_id: str | None,
    cluster_name: str | None,
    app_name: str | None,
    deployment_name: str | None,
    cpu: int | None,
    memory: int | None,
    instance_count: int | None,
    verbose: bool,
) -> None:
    """Scale an existing Spring Cloud deployment."""
    _setup_logging(level=logging.INFO if verbose else logging.WARNING)
    load = partial(
        load_settings,
        config_file,
        subscription_id=subscription_id,
        cluster_name=cluster_name,
        app_name=app_name,
        deployment={
            "name": deployment_name,
            "cpu": cpu,
            "memory_in_gb": memory,
            "instance_count": instance_count,
        },
    )

    def _scale(
        settings: ToolkitSettings, tracker: OperationTracker, telemetry: Telemetry
    ) -> None:
        deployment_config = parse_deployment_config(settings, require_artifact=False)
        if deployment_config.scale_settings is None:
            raise click.UsageError("Specify at least one of --cpu, --memory or --instance-count.")
        client, sub_id = _client(settings, telemetry)
        app = _spring_app(settings, client, sub_id)
        deployment = app.deployment(deployment_config)
        if not deployment.exists():
            raise ToolkitError(f"Deployment({deployment.name}) of app({app.name}) does not exist")
        tracker.trace(subscriptionId=sub_id, **deployment_config.scale_settings.model_dump())
        deployment.scale(deployment_config.scale_settings)
        click.echo(f"Deployment({click.style(deployment.name, fg='cyan')}) is scaled.")

    _run("ScaleOperation", load, _scale)


@cli.command("sql-server")
@_config_option
@click.option("--subscription-id", default=None, help="Azure subscription ID.")
@click.option("--resource-group", default=None, help="Resource group of the server.")
@click.option("--name", default=None, help="SQL server name.")
@click.option("--region", default=None, help="Region to create the server in.")
@click.option("--admin-login", default=None, help="Administrator login (creation only).")
@click.option(
    "--admin-password",
    default=None,
    envvar="AZ_TOOLKIT_SQL_ADMIN_PASSWORD",
    help="Administrator password (creation only).",
)
@click.option(
    "--azure-services/--no-azure-services",
    default=None,
    help="Allow access from Azure services.",
)
@click.option(
    "--local-machine/--no-local-machine",
    default=None,
    help="Allow access from the local machine IP.",
)
@click.option("--local-ip", default=None, help="Public IP address of the local machine.")
@_verbose_option
def sql_server(
    config_file: Path | None,
    subscription_id: str | None,
    resource_group: str | None,
    name: str | None,
    region: str | None,
    admin_login: str | None,
    admin_password: str | None,
    azure_services: bool | None,
    local_machine: bool | None,
    local_ip: str | None,
    verbose: bool,
) -> None:
    """Create or update an Azure SQL server and its firewall access."""
    _setup_logging(level=logging.INFO if verbose else logging.WARNING)
    load = partial(
        load_settings,
        config_file,
        subscription_id=subscription_id,
        sql_server={
            "name": name,
            "resource_group": resource_group,
            "region": region,
            "administrator_login": admin_login,
            "administrator_password": admin_password,
            "enable_access_from_azure_services": azure_services,
            "enable_access_from_local_machine": local_machine,
            "local_ip_address": local_ip,
        },
    )

    def _sql(
        settings: ToolkitSettings, tracker: OperationTracker, telemetry: Telemetry
    ) -> None:
        config = parse_sql_server_config(settings)
        client, sub_id = _client(settings, telemetry)
        server = SqlServer(config, SqlServerApi(client, sub_id, config.resource_group, config.name))
        tracker.trace(subscriptionId=sub_id, region=config.region)
        builder = server.update() if server.exists() else server.create()
        state = builder.commit()
        if state is not None:
            click.echo(
                f"SQL server({click.style(state.name, fg='cyan')}) is ready: "
                f"{state.fully_qualified_domain_name}"
            )

    _run("SqlServerOperation", load, _sql)
