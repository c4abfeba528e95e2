"""Thin ARM REST client over ``requests``.

Translates HTTP failures into the toolkit's error taxonomy and waits for
long-running operations with the shared poller.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from az_toolkit.auth.credentials import AzureCredentialWrapper
from az_toolkit.azure_api._pagination import _paginate
from az_toolkit.errors import NotFoundError, RemoteRequestError, RemoteUnavailableError
from az_toolkit.reconcile.poller import poll_until

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = 30
_LRO_TIMEOUT = 1800  # 30 minutes
_LRO_INTERVAL = 5.0
_LRO_TERMINAL = {"succeeded", "failed", "canceled", "cancelled"}


def _error_details(resp: requests.Response) -> tuple[str | None, str]:
    """Extract ``(code, message)`` from an ARM error body."""
    try:
        body = resp.json()
    except ValueError:
        return None, resp.text[:500]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("code"), error.get("message") or ""
    return None, resp.text[:500]


class ArmClient:
    """Authenticated session against one Azure cloud's management endpoint."""

    def __init__(
        self,
        credential: AzureCredentialWrapper,
        *,
        user_agent: str | None = None,
        proxy: str | None = None,
        timeout: int = _REQUEST_TIMEOUT,
        lro_timeout: float = _LRO_TIMEOUT,
        lro_interval: float = _LRO_INTERVAL,
    ) -> None:
        self.credential = credential
        self.base_url = credential.environment.management_endpoint
        self.timeout = timeout
        self.lro_timeout = lro_timeout
        self.lro_interval = lro_interval
        self.session = requests.Session()
        if user_agent:
            self.session.headers["User-Agent"] = user_agent
        if proxy:
            self.session.proxies.update({"http": proxy, "https": proxy})

    def _url(self, path: str, api_version: str | None) -> str:
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        if api_version:
            sep = "&" if "?" in url else "?"
            url = f"{url}{sep}api-version={api_version}"
        return url

    def _send(self, method: str, url: str, json: Any = None) -> requests.Response:
        headers = self.credential.get_headers()
        try:
            resp = self.session.request(method, url, headers=headers, json=json, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RemoteUnavailableError(f"Cannot reach {url}: {exc}") from exc
        if resp.status_code == 404:
            code, message = _error_details(resp)
            raise NotFoundError(message or f"Resource not found: {url}")
        if resp.status_code >= 400:
            code, message = _error_details(resp)
            raise RemoteRequestError(
                f"{method} {url} failed ({resp.status_code}): {message}",
                status_code=resp.status_code,
                code=code,
            )
        return resp

    def _wait(self, resp: requests.Response) -> None:
        """Block until the long-running operation behind *resp* completes."""
        async_url = resp.headers.get("Azure-AsyncOperation")
        location = resp.headers.get("Location")
        if resp.status_code not in (201, 202):
            return

        if async_url:

            def _status() -> dict:
                return self._send("GET", async_url).json()

            def _done(body: dict) -> bool:
                return str(body.get("status", "")).lower() in _LRO_TERMINAL

            body = poll_until(_status, _done, self.lro_timeout, interval=self.lro_interval)
            if str(body.get("status")).lower() != "succeeded":
                error = body.get("error") or {}
                raise RemoteRequestError(
                    f"Operation {body.get('status')}: {error.get('message', '')}",
                    status_code=resp.status_code,
                    code=error.get("code"),
                )
        elif location:
            poll_until(
                lambda: self._send("GET", location),
                lambda r: r.status_code != 202,
                self.lro_timeout,
                interval=self.lro_interval,
            )

    def request(
        self,
        method: str,
        path: str,
        api_version: str | None,
        json: Any = None,
        *,
        wait: bool = True,
    ) -> dict | None:
        url = self._url(path, api_version)
        logger.debug("%s %s", method, url)
        resp = self._send(method, url, json=json)
        if wait:
            self._wait(resp)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            data: dict = resp.json()
        except ValueError:
            return None
        return data

    def get(self, path: str, api_version: str) -> dict:
        return self.request("GET", path, api_version) or {}

    def put(self, path: str, api_version: str, body: dict) -> dict:
        self.request("PUT", path, api_version, body)
        return self.get(path, api_version)

    def patch(self, path: str, api_version: str, body: dict) -> dict:
        self.request("PATCH", path, api_version, body)
        return self.get(path, api_version)

    def post(self, path: str, api_version: str, body: dict | None = None, *, wait: bool = True) -> dict | None:
        return self.request("POST", path, api_version, body, wait=wait)

    def delete(self, path: str, api_version: str) -> None:
        self.request("DELETE", path, api_version)

    def list(self, path: str, api_version: str) -> list[dict]:
        return _paginate(self._url(path, api_version), lambda url: self._send("GET", url))
