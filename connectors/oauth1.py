"""
OAuth 1.0 / 1.0a client operations.

Request signing (HMAC-SHA1, ``Authorization`` header) is delegated to
``oauthlib``; the HTTP exchange runs over ``httpx``.  ``OAuth1Auth`` is also
used by provider API clients to sign ordinary resource requests.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Generator, Mapping, Optional
from urllib.parse import parse_qsl, urlencode

import httpx
from oauthlib.oauth1 import SIGNATURE_HMAC, SIGNATURE_TYPE_AUTH_HEADER
from oauthlib.oauth1 import Client as OAuthlibClient

from config.settings import config
from connectors.exceptions import ProviderAuthorizationError, ProviderCommunicationError
from connectors.tokens import AuthorizedRequestToken, OAuthToken

logger = logging.getLogger(__name__)

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
_REJECTED_STATUSES = {400, 401, 403}
_OUT_OF_BAND = "oob"


class OAuth1Version(str, Enum):
    """Core 1.0 passes the callback on the authorize URL; 1.0a signs it and adds a verifier."""

    CORE_10 = "1.0"
    CORE_10_REVISION_A = "1.0a"


class OAuth1Auth(httpx.Auth):
    """Signs each request with the consumer credentials and, if given, a token."""

    requires_request_body = True

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        token: Optional[str] = None,
        token_secret: Optional[str] = None,
        *,
        callback_uri: Optional[str] = None,
        verifier: Optional[str] = None,
    ) -> None:
        self._client = OAuthlibClient(
            consumer_key,
            client_secret=consumer_secret,
            resource_owner_key=token,
            resource_owner_secret=token_secret,
            callback_uri=callback_uri,
            verifier=verifier,
            signature_method=SIGNATURE_HMAC,
            signature_type=SIGNATURE_TYPE_AUTH_HEADER,
        )

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        body = None
        headers: Dict[str, str] = {}
        if request.headers.get("content-type", "").startswith(_FORM_CONTENT_TYPE) and request.content:
            body = request.content.decode()
            headers["Content-Type"] = _FORM_CONTENT_TYPE
        _, signed, _ = self._client.sign(
            str(request.url), http_method=request.method, body=body, headers=headers
        )
        request.headers["Authorization"] = signed["Authorization"]
        yield request


class OAuth1Template:
    """OAuth 1 three-legged flow against one provider."""

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        request_token_url: str,
        authorize_url: str,
        access_token_url: str,
        *,
        authenticate_url: Optional[str] = None,
        version: OAuth1Version = OAuth1Version.CORE_10_REVISION_A,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._request_token_url = request_token_url
        self._authorize_url = authorize_url
        self._authenticate_url = authenticate_url
        self._access_token_url = access_token_url
        self._version = version
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=config.http_timeout_seconds)

    @property
    def version(self) -> OAuth1Version:
        return self._version

    def fetch_request_token(
        self,
        callback_url: Optional[str],
        params: Optional[Mapping[str, str]] = None,
    ) -> OAuthToken:
        """Step one: obtain an unauthorized request token."""
        callback = None
        if self._version == OAuth1Version.CORE_10_REVISION_A:
            # 1.0a requires oauth_callback; "oob" marks an out-of-band verifier
            callback = callback_url or _OUT_OF_BAND
        auth = OAuth1Auth(self._consumer_key, self._consumer_secret, callback_uri=callback)
        return self._exchange_for_token(self._request_token_url, auth, params)

    def build_authorize_url(
        self,
        request_token: str,
        callback_url: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Step two: where to send the user to authorize the request token."""
        return self._build_oauth_url(self._authorize_url, request_token, callback_url, params)

    def build_authenticate_url(
        self,
        request_token: str,
        callback_url: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> str:
        base = self._authenticate_url or self._authorize_url
        return self._build_oauth_url(base, request_token, callback_url, params)

    def exchange_for_access_token(
        self,
        request_token: AuthorizedRequestToken,
        params: Optional[Mapping[str, str]] = None,
    ) -> OAuthToken:
        """Step three: trade the authorized request token for an access token."""
        verifier = request_token.verifier if self._version == OAuth1Version.CORE_10_REVISION_A else None
        auth = OAuth1Auth(
            self._consumer_key,
            self._consumer_secret,
            request_token.value,
            request_token.secret,
            verifier=verifier,
        )
        return self._exchange_for_token(self._access_token_url, auth, params)

    def close(self) -> None:
        """Close the token-endpoint client unless it was passed in."""
        if self._owns_http:
            self._http.close()

    # ── Internal helpers ───────────────────────────────────────────────

    def _build_oauth_url(
        self,
        base_url: str,
        request_token: str,
        callback_url: Optional[str],
        params: Optional[Mapping[str, str]],
    ) -> str:
        query: Dict[str, str] = {"oauth_token": request_token}
        if self._version == OAuth1Version.CORE_10 and callback_url:
            query["oauth_callback"] = callback_url
        if params:
            query.update(params)
        separator = "&" if "?" in base_url else "?"
        return f"{base_url}{separator}{urlencode(query)}"

    def _exchange_for_token(
        self,
        url: str,
        auth: OAuth1Auth,
        params: Optional[Mapping[str, str]],
    ) -> OAuthToken:
        try:
            resp = self._http.post(url, data=dict(params) if params else None, auth=auth)
        except httpx.TransportError as exc:
            raise ProviderCommunicationError(f"OAuth endpoint {url} unreachable: {exc}") from exc

        body = dict(parse_qsl(resp.text))
        if resp.status_code in _REJECTED_STATUSES:
            problem = body.get("oauth_problem") or resp.text[:200] or "no error detail"
            raise ProviderAuthorizationError(
                f"OAuth request to {url} rejected ({resp.status_code}): {problem}",
                status_code=resp.status_code,
            )
        if resp.is_error:
            raise ProviderCommunicationError(
                f"OAuth endpoint {url} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        if "oauth_token" not in body:
            raise ProviderAuthorizationError(
                f"OAuth response from {url} did not contain an oauth_token",
                status_code=resp.status_code,
            )
        return OAuthToken(value=body["oauth_token"], secret=body.get("oauth_token_secret"))
