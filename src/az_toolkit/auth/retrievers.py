"""Credential retrievers, one per authentication method.

Every retriever builds an ``azure-identity`` credential and validates it by
requesting a management-plane token before handing it out, so a broken
login surfaces here rather than on the first ARM call.
"""

from __future__ import annotations

import logging

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import (
    AzureCliCredential,
    CertificateCredential,
    ClientSecretCredential,
    CredentialUnavailableError,
    DeviceCodeCredential,
    InteractiveBrowserCredential,
    ManagedIdentityCredential,
)

from az_toolkit.auth.credentials import AzureCredentialWrapper, _suppress_stderr, _token_claims
from az_toolkit.auth.models import AuthType, AzureEnvironment
from az_toolkit.errors import ConfigurationError, RemoteUnavailableError

logger = logging.getLogger(__name__)


class CredentialRetriever:
    auth_type: AuthType

    def __init__(self, environment: AzureEnvironment = AzureEnvironment.azure) -> None:
        self.environment = environment

    def build(self) -> TokenCredential:
        raise NotImplementedError

    def retrieve(self) -> AzureCredentialWrapper:
        credential = self.build()
        try:
            token = credential.get_token(self.environment.scope)
        except (CredentialUnavailableError, ClientAuthenticationError) as exc:
            raise RemoteUnavailableError(
                f"Cannot authenticate with {self.auth_type.value}: {exc}"
            ) from exc
        claims = _token_claims(token.token)
        return AzureCredentialWrapper(
            auth_method=self.auth_type,
            credential=credential,
            environment=self.environment,
            tenant_id=claims.get("tid"),
            username=claims.get("upn") or claims.get("unique_name"),
        )


class ServicePrincipalCredentialRetriever(CredentialRetriever):
    auth_type = AuthType.service_principal

    def __init__(
        self,
        tenant_id: str | None,
        client_id: str | None,
        client_secret: str | None = None,
        certificate_path: str | None = None,
        environment: AzureEnvironment = AzureEnvironment.azure,
    ) -> None:
        super().__init__(environment)
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.certificate_path = certificate_path

    @property
    def is_configured(self) -> bool:
        return bool(self.tenant_id and self.client_id and (self.client_secret or self.certificate_path))

    def build(self) -> TokenCredential:
        tenant_id, client_id = self.tenant_id, self.client_id
        if not (tenant_id and client_id and (self.client_secret or self.certificate_path)):
            missing = [
                name for name, value in (("tenant_id", tenant_id), ("client_id", client_id)) if not value
            ]
            if not (self.client_secret or self.certificate_path):
                missing.append("client_secret or certificate_path")
            raise ConfigurationError(
                f"Service principal authentication requires {', '.join(missing)}",
                missing=missing,
            )
        if self.client_secret:
            return ClientSecretCredential(
                tenant_id,
                client_id,
                self.client_secret,
                authority=self.environment.authority_host,
            )
        return CertificateCredential(
            tenant_id,
            client_id,
            certificate_path=self.certificate_path,
            authority=self.environment.authority_host,
        )


class ManagedIdentityCredentialRetriever(CredentialRetriever):
    auth_type = AuthType.managed_identity

    def __init__(
        self,
        client_id: str | None = None,
        environment: AzureEnvironment = AzureEnvironment.azure,
    ) -> None:
        super().__init__(environment)
        self.client_id = client_id

    def build(self) -> TokenCredential:
        if self.client_id:
            return ManagedIdentityCredential(client_id=self.client_id)
        return ManagedIdentityCredential()


class AzureCliCredentialRetriever(CredentialRetriever):
    auth_type = AuthType.azure_cli

    def __init__(
        self,
        tenant_id: str | None = None,
        environment: AzureEnvironment = AzureEnvironment.azure,
    ) -> None:
        super().__init__(environment)
        self.tenant_id = tenant_id

    def build(self) -> TokenCredential:
        return AzureCliCredential(tenant_id=self.tenant_id or "")


class DeviceCodeCredentialRetriever(CredentialRetriever):
    auth_type = AuthType.device_code

    def __init__(
        self,
        tenant_id: str | None = None,
        client_id: str | None = None,
        environment: AzureEnvironment = AzureEnvironment.azure,
    ) -> None:
        super().__init__(environment)
        self.tenant_id = tenant_id
        self.client_id = client_id

    def build(self) -> TokenCredential:
        kwargs: dict[str, str] = {"authority": self.environment.authority_host}
        if self.tenant_id:
            kwargs["tenant_id"] = self.tenant_id
        if self.client_id:
            kwargs["client_id"] = self.client_id
        return DeviceCodeCredential(**kwargs)


class OAuth2CredentialRetriever(DeviceCodeCredentialRetriever):
    """Interactive browser login."""

    auth_type = AuthType.oauth2

    def build(self) -> TokenCredential:
        kwargs: dict[str, str] = {"authority": self.environment.authority_host}
        if self.tenant_id:
            kwargs["tenant_id"] = self.tenant_id
        if self.client_id:
            kwargs["client_id"] = self.client_id
        return InteractiveBrowserCredential(**kwargs)


def login(
    auth_type: AuthType | str | None = None,
    *,
    environment: AzureEnvironment | str | None = None,
    tenant_id: str | None = None,
    client_id: str | None = None,
    client_secret: str | None = None,
    certificate_path: str | None = None,
) -> AzureCredentialWrapper:
    """Authenticate with the requested method and return a validated credential.

    With :attr:`AuthType.auto` the service principal (when configured),
    managed identity and Azure CLI retrievers are tried in that order and
    the first credential that yields a token wins.
    """
    if not isinstance(auth_type, AuthType):
        auth_type = AuthType.parse(auth_type)
    if not isinstance(environment, AzureEnvironment):
        environment = AzureEnvironment.parse(environment)

    sp = ServicePrincipalCredentialRetriever(
        tenant_id, client_id, client_secret, certificate_path, environment
    )
    retrievers: dict[AuthType, CredentialRetriever] = {
        AuthType.service_principal: sp,
        AuthType.managed_identity: ManagedIdentityCredentialRetriever(client_id, environment),
        AuthType.azure_cli: AzureCliCredentialRetriever(tenant_id, environment),
        AuthType.device_code: DeviceCodeCredentialRetriever(tenant_id, client_id, environment),
        AuthType.oauth2: OAuth2CredentialRetriever(tenant_id, client_id, environment),
    }
    if auth_type is not AuthType.auto:
        return retrievers[auth_type].retrieve()

    chain = [AuthType.managed_identity, AuthType.azure_cli]
    if sp.is_configured:
        chain.insert(0, AuthType.service_principal)

    # Silence the Azure CLI subprocess and azure-identity warnings while probing.
    azure_logger = logging.getLogger("azure")
    previous_level = azure_logger.level
    azure_logger.setLevel(logging.CRITICAL)
    errors: list[str] = []
    try:
        with _suppress_stderr():
            for candidate in chain:
                try:
                    return retrievers[candidate].retrieve()
                except RemoteUnavailableError as exc:
                    logger.debug("Auth method %s unavailable: %s", candidate.value, exc)
                    errors.append(f"{candidate.value}: {exc}")
    finally:
        azure_logger.setLevel(previous_level)
    raise RemoteUnavailableError(
        "Failed to authenticate with Azure. Please check your configuration.\n  "
        + "\n  ".join(errors)
    )
