"""Azure authentication: credential retrievers and the credential wrapper."""

from az_toolkit.auth.credentials import AzureCredentialWrapper  # noqa: F401
from az_toolkit.auth.models import AuthType, AzureEnvironment  # noqa: F401
from az_toolkit.auth.retrievers import (  # noqa: F401
    AzureCliCredentialRetriever,
    CredentialRetriever,
    DeviceCodeCredentialRetriever,
    ManagedIdentityCredentialRetriever,
    OAuth2CredentialRetriever,
    ServicePrincipalCredentialRetriever,
    login,
)
