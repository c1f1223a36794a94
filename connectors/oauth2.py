"""
OAuth 2 client operations — authorize URLs, code exchange and refresh.

Talks to the provider's token endpoint over ``httpx``.  Rejections (4xx or an
``error`` payload) raise ``ProviderAuthorizationError``; transport failures
and unexpected statuses raise ``ProviderCommunicationError``.  Nothing is
retried: a rejected grant needs fresh user interaction.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Generator, Mapping, Optional
from urllib.parse import parse_qsl, urlencode

import httpx

from config.settings import config
from connectors.exceptions import ProviderAuthorizationError, ProviderCommunicationError
from connectors.tokens import AccessGrant

logger = logging.getLogger(__name__)

_REJECTED_STATUSES = {400, 401, 403}


class BearerAuth(httpx.Auth):
    """Adds ``Authorization: Bearer <token>`` to every request."""

    def __init__(self, access_token: str) -> None:
        self._access_token = access_token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._access_token}"
        yield request


class OAuth2Template:
    """OAuth 2 authorization-code flow against one provider."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        authorize_url: str,
        access_token_url: str,
        *,
        authenticate_url: Optional[str] = None,
        use_parameters_for_client_authentication: bool = True,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._authorize_url = authorize_url
        self._authenticate_url = authenticate_url
        self._access_token_url = access_token_url
        self._use_parameters = use_parameters_for_client_authentication
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=config.http_timeout_seconds)

    # ── Authorization URLs ─────────────────────────────────────────────

    def build_authorize_url(
        self,
        redirect_uri: Optional[str] = None,
        scope: Optional[str] = None,
        state: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
        response_type: str = "code",
    ) -> str:
        return self._build_auth_url(self._authorize_url, redirect_uri, scope, state, params, response_type)

    def build_authenticate_url(
        self,
        redirect_uri: Optional[str] = None,
        scope: Optional[str] = None,
        state: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
        response_type: str = "code",
    ) -> str:
        """Like ``build_authorize_url`` but for sign-in; falls back to the authorize URL."""
        base = self._authenticate_url or self._authorize_url
        return self._build_auth_url(base, redirect_uri, scope, state, params, response_type)

    # ── Token endpoint ─────────────────────────────────────────────────

    def exchange_for_access(
        self,
        authorization_code: str,
        redirect_uri: str,
        params: Optional[Mapping[str, str]] = None,
    ) -> AccessGrant:
        form = {
            "code": authorization_code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }
        if params:
            form.update(params)
        return self._post_for_access_grant(form)

    def refresh_access(
        self,
        refresh_token: str,
        scope: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> AccessGrant:
        form = {"refresh_token": refresh_token, "grant_type": "refresh_token"}
        if scope:
            form["scope"] = scope
        if params:
            form.update(params)
        return self._post_for_access_grant(form)

    def close(self) -> None:
        """Close the token-endpoint client unless it was passed in."""
        if self._owns_http:
            self._http.close()

    # ── Internal helpers ───────────────────────────────────────────────

    def _build_auth_url(
        self,
        base_url: str,
        redirect_uri: Optional[str],
        scope: Optional[str],
        state: Optional[str],
        params: Optional[Mapping[str, str]],
        response_type: str,
    ) -> str:
        query: Dict[str, str] = {"client_id": self._client_id, "response_type": response_type}
        if redirect_uri:
            query["redirect_uri"] = redirect_uri
        if scope:
            query["scope"] = scope
        if state:
            query["state"] = state
        if params:
            query.update(params)
        separator = "&" if "?" in base_url else "?"
        return f"{base_url}{separator}{urlencode(query)}"

    def _post_for_access_grant(self, form: Dict[str, str]) -> AccessGrant:
        auth = None
        if self._use_parameters:
            form = {"client_id": self._client_id, "client_secret": self._client_secret, **form}
        else:
            auth = httpx.BasicAuth(self._client_id, self._client_secret)

        try:
            resp = self._http.post(
                self._access_token_url,
                data=form,
                headers={"Accept": "application/json"},
                auth=auth,
            )
        except httpx.TransportError as exc:
            raise ProviderCommunicationError(
                f"Token endpoint {self._access_token_url} unreachable: {exc}"
            ) from exc

        payload = _parse_token_response(resp)

        if resp.status_code in _REJECTED_STATUSES:
            raise ProviderAuthorizationError(
                f"Token request rejected ({resp.status_code}): {_error_description(payload)}",
                status_code=resp.status_code,
            )
        if resp.is_error:
            raise ProviderCommunicationError(
                f"Token endpoint returned {resp.status_code}",
                status_code=resp.status_code,
            )
        if "error" in payload:
            raise ProviderAuthorizationError(
                f"Token request rejected: {_error_description(payload)}",
                status_code=resp.status_code,
            )
        if not payload.get("access_token"):
            raise ProviderAuthorizationError(
                "Token response did not contain an access_token",
                status_code=resp.status_code,
            )
        return self.extract_access_grant(payload)

    def extract_access_grant(self, payload: Mapping[str, Any]) -> AccessGrant:
        """Build an ``AccessGrant``; providers with unusual responses override this."""
        expires_in = payload.get("expires_in")
        expire_time = None
        if expires_in not in (None, ""):
            expire_time = int(time.time() * 1000) + int(expires_in) * 1000
        return AccessGrant(
            access_token=payload["access_token"],
            scope=payload.get("scope") or None,
            refresh_token=payload.get("refresh_token") or None,
            expire_time=expire_time,
        )


def _parse_token_response(resp: httpx.Response) -> Dict[str, Any]:
    """Token endpoints answer in JSON or, for older providers, form encoding."""
    content_type = resp.headers.get("content-type", "")
    if "json" in content_type:
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    return dict(parse_qsl(resp.text))


def _error_description(payload: Mapping[str, Any]) -> str:
    return str(payload.get("error_description") or payload.get("error") or "no error detail")
