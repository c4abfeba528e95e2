"""Credential wrapper handed to the ARM client."""

from __future__ import annotations

import base64
import json
import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import CredentialUnavailableError

from az_toolkit.auth.models import AuthType, AzureEnvironment
from az_toolkit.errors import RemoteUnavailableError

logger = logging.getLogger(__name__)


@contextmanager
def _suppress_stderr() -> Generator[None]:
    """Temporarily redirect OS-level stderr to ``/dev/null``.

    This silences subprocess output (e.g. from ``AzureCliCredential``)
    that bypasses Python's logging system.
    """
    original_fd = os.dup(2)
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, 2)
    os.close(devnull)
    try:
        yield
    finally:
        os.dup2(original_fd, 2)
        os.close(original_fd)


def _token_claims(token: str) -> dict:
    """Decode the (unverified) JWT payload of an access token."""
    try:
        payload = token.split(".")[1]
        payload += "=" * (-len(payload) % 4)
        claims: dict = json.loads(base64.urlsafe_b64decode(payload))
        return claims
    except (IndexError, ValueError):
        return {}


@dataclass
class AzureCredentialWrapper:
    """An authenticated credential plus the cloud it authenticates against."""

    auth_method: AuthType
    credential: TokenCredential
    environment: AzureEnvironment = AzureEnvironment.azure
    tenant_id: str | None = None
    username: str | None = None

    def get_token(self) -> str:
        kwargs: dict[str, str] = {}
        if self.tenant_id:
            kwargs["tenant_id"] = self.tenant_id
        try:
            return self.credential.get_token(self.environment.scope, **kwargs).token
        except (CredentialUnavailableError, ClientAuthenticationError) as exc:
            raise RemoteUnavailableError(f"Failed to acquire an access token: {exc}") from exc

    def get_headers(self) -> dict[str, str]:
        """Return authorization headers for ARM requests."""
        return {
            "Authorization": f"Bearer {self.get_token()}",
            "Content-Type": "application/json",
        }

    def describe(self) -> list[str]:
        details = [f"Auth method: {self.auth_method.value}"]
        if self.username:
            details.append(f"Username: {self.username}")
        if self.environment is not AzureEnvironment.azure:
            details.append(f"Azure environment: {self.environment.name}")
        return details
