"""Authentication methods and Azure cloud environments."""

from enum import Enum, StrEnum

from azure.identity import AzureAuthorityHosts

from az_toolkit.errors import ConfigurationError


class AuthType(StrEnum):
    """Supported authentication methods."""

    auto = "auto"
    service_principal = "service_principal"
    managed_identity = "managed_identity"
    azure_cli = "azure_cli"
    device_code = "device_code"
    oauth2 = "oauth2"

    @classmethod
    def parse(cls, value: str | None) -> "AuthType":
        """Parse a user-supplied auth type; blank means :attr:`auto`."""
        if not value or not value.strip():
            return cls.auto
        key = value.strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ConfigurationError(
                f"Invalid auth type '{value}', supported values are: {valid}"
            ) from None


class AzureEnvironment(Enum):
    """Azure clouds with their ARM endpoint and Entra ID authority host."""

    azure = ("https://management.azure.com", AzureAuthorityHosts.AZURE_PUBLIC_CLOUD)
    azure_china = ("https://management.chinacloudapi.cn", AzureAuthorityHosts.AZURE_CHINA)
    azure_us_government = (
        "https://management.usgovcloudapi.net",
        AzureAuthorityHosts.AZURE_GOVERNMENT,
    )

    def __init__(self, management_endpoint: str, authority_host: str) -> None:
        self.management_endpoint = management_endpoint
        self.authority_host = authority_host

    @property
    def scope(self) -> str:
        return f"{self.management_endpoint}/.default"

    @classmethod
    def parse(cls, value: str | None) -> "AzureEnvironment":
        """Accept ``azure``, ``AzureChinaCloud``, ``azure_us_government``, etc."""
        if not value or not value.strip():
            return cls.azure
        key = value.strip().lower().replace("-", "_")
        aliases = {
            "azurecloud": "azure",
            "azure_cloud": "azure",
            "azurechinacloud": "azure_china",
            "azure_china_cloud": "azure_china",
            "azureusgovernment": "azure_us_government",
            "azure_us_government_cloud": "azure_us_government",
        }
        key = aliases.get(key, key)
        try:
            return cls[key]
        except KeyError:
            valid = ", ".join(m.name for m in cls)
            raise ConfigurationError(
                f"Invalid Azure environment '{value}', supported values are: {valid}"
            ) from None
