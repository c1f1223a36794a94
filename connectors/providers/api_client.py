"""
Shared HTTP plumbing for the bundled provider API clients.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from config.settings import config
from connectors.exceptions import ProviderAuthorizationError, ProviderCommunicationError

logger = logging.getLogger(__name__)


def build_api_http_client(
    base_url: str,
    *,
    headers: Optional[dict] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """One pooled client per provider; every ``ProviderApiClient`` of that provider shares it."""
    return httpx.Client(
        base_url=base_url,
        headers=headers,
        transport=transport,
        timeout=config.http_timeout_seconds,
    )


class ProviderApiClient:
    """
    Thin authorized client over one provider's REST API.

    Parameters
    ----------
    provider_id : str
        Used in error messages and on raised exceptions.
    http_client : httpx.Client
        Shared, provider-wide client from ``build_api_http_client``; owned
        by the connection factory, not by this object.
    auth : httpx.Auth
        Signs every request (bearer token, OAuth 1 signature, …).
    """

    def __init__(self, provider_id: str, http_client: httpx.Client, auth: httpx.Auth) -> None:
        self._provider_id = provider_id
        self._http = http_client
        self._auth = auth

    @property
    def http_client(self) -> httpx.Client:
        return self._http

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = self._http.request(method, path, auth=self._auth, **kwargs)
        except httpx.TransportError as exc:
            raise ProviderCommunicationError(f"{self._provider_id} API unreachable: {exc}") from exc

        if resp.status_code in (401, 403):
            raise ProviderAuthorizationError(
                f"{self._provider_id} API rejected the credentials ({resp.status_code})",
                provider_id=self._provider_id,
                status_code=resp.status_code,
            )
        if resp.is_error:
            logger.warning("%s %s %s returned %s", self._provider_id, method, path, resp.status_code)
            raise ProviderCommunicationError(
                f"{self._provider_id} API returned {resp.status_code} for {method} {path}",
                status_code=resp.status_code,
            )
        return resp.json() if resp.content else None
