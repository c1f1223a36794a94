"""
Connection factories — protocol-specific construction of ``Connection`` objects.

A factory drives the handshake for its protocol and builds connections
either from a fresh handshake result (``OAuthToken`` / ``AccessGrant``) or
from persisted ``ConnectionData`` (no network I/O).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Mapping, Optional, TypeVar, Union

from connectors.base import ApiAdapter, OAuth1ServiceProvider, OAuth2ServiceProvider, ServiceProvider
from connectors.connection import Connection, OAuth1Connection, OAuth2Connection
from connectors.data import ConnectionData
from connectors.exceptions import UnsupportedOperationError
from connectors.oauth1 import OAuth1Template
from connectors.oauth2 import OAuth2Template
from connectors.tokens import AccessGrant, AuthorizedRequestToken, OAuthToken

A = TypeVar("A")


class ConnectionFactory(ABC, Generic[A]):
    """
    Base factory.

    Parameters
    ----------
    provider_id : str
        Stable provider slug: 'github', 'twitter', …
    api_type : type
        Class of the API client the provider's connections expose; the
        registry indexes factories by it.
    callback_url : str, optional
        Default OAuth callback / redirect URI for the handshake methods.
    """

    def __init__(
        self,
        provider_id: str,
        service_provider: ServiceProvider[A],
        api_adapter: ApiAdapter[A],
        api_type: type,
        *,
        callback_url: Optional[str] = None,
    ) -> None:
        self._provider_id = provider_id
        self._callback_url = callback_url
        self._service_provider = service_provider
        self._api_adapter = api_adapter
        self._api_type = api_type

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def api_type(self) -> type:
        return self._api_type

    @property
    def callback_url(self) -> Optional[str]:
        return self._callback_url

    @property
    def service_provider(self) -> ServiceProvider[A]:
        return self._service_provider

    @property
    def api_adapter(self) -> ApiAdapter[A]:
        return self._api_adapter

    @abstractmethod
    def create_connection(self, source) -> Connection[A]:
        """Build a connection from a handshake result or from ``ConnectionData``."""
        ...

    def close(self) -> None:
        """Release HTTP clients the factory owns; no-op by default."""
        return None


class OAuth1ConnectionFactory(ConnectionFactory[A]):
    def __init__(
        self,
        provider_id: str,
        service_provider: OAuth1ServiceProvider[A],
        api_adapter: ApiAdapter[A],
        api_type: type,
        *,
        callback_url: Optional[str] = None,
    ) -> None:
        super().__init__(provider_id, service_provider, api_adapter, api_type, callback_url=callback_url)

    @property
    def oauth_operations(self) -> OAuth1Template:
        return self._service_provider.oauth_operations

    def fetch_request_token(
        self,
        callback_url: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> OAuthToken:
        return self.oauth_operations.fetch_request_token(callback_url or self._callback_url, params)

    def build_authorize_url(
        self,
        request_token: Union[OAuthToken, str],
        params: Optional[Mapping[str, str]] = None,
        callback_url: Optional[str] = None,
    ) -> str:
        value = request_token.value if isinstance(request_token, OAuthToken) else request_token
        return self.oauth_operations.build_authorize_url(value, callback_url or self._callback_url, params)

    def build_authenticate_url(
        self,
        request_token: Union[OAuthToken, str],
        params: Optional[Mapping[str, str]] = None,
        callback_url: Optional[str] = None,
    ) -> str:
        value = request_token.value if isinstance(request_token, OAuthToken) else request_token
        return self.oauth_operations.build_authenticate_url(value, callback_url or self._callback_url, params)

    def exchange_for_access_token(self, request_token: AuthorizedRequestToken) -> OAuthToken:
        return self.oauth_operations.exchange_for_access_token(request_token)

    def create_connection(self, source: Union[OAuthToken, ConnectionData]) -> Connection[A]:
        if isinstance(source, ConnectionData):
            return OAuth1Connection(self._service_provider, self._api_adapter, data=source)
        if isinstance(source, OAuthToken):
            return OAuth1Connection(
                self._service_provider,
                self._api_adapter,
                provider_id=self._provider_id,
                provider_user_id=self.extract_provider_user_id(source),
                access_token=source.value,
                secret=source.secret,
            )
        raise TypeError(f"Cannot create an OAuth 1 connection from {type(source).__name__}")

    def extract_provider_user_id(self, access_token: OAuthToken) -> Optional[str]:
        """
        Hook for providers that return the user id with the access token.

        ``None`` makes the connection ask the ``ApiAdapter`` instead.
        """
        return None


class OAuth2ConnectionFactory(ConnectionFactory[A]):
    def __init__(
        self,
        provider_id: str,
        service_provider: OAuth2ServiceProvider[A],
        api_adapter: ApiAdapter[A],
        api_type: type,
        *,
        callback_url: Optional[str] = None,
    ) -> None:
        super().__init__(provider_id, service_provider, api_adapter, api_type, callback_url=callback_url)

    @property
    def oauth_operations(self) -> OAuth2Template:
        return self._service_provider.oauth_operations

    def fetch_request_token(self, *args, **kwargs) -> OAuthToken:
        raise UnsupportedOperationError("OAuth 2 has no request-token step")

    def build_authorize_url(
        self,
        redirect_uri: Optional[str] = None,
        scope: Optional[str] = None,
        state: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> str:
        return self.oauth_operations.build_authorize_url(redirect_uri or self._callback_url, scope, state, params)

    def build_authenticate_url(
        self,
        redirect_uri: Optional[str] = None,
        scope: Optional[str] = None,
        state: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> str:
        return self.oauth_operations.build_authenticate_url(redirect_uri or self._callback_url, scope, state, params)

    def exchange_for_access(self, authorization_code: str, redirect_uri: Optional[str] = None) -> AccessGrant:
        redirect_uri = redirect_uri or self._callback_url
        if not redirect_uri:
            raise ValueError(f"No redirect_uri given and no callback URL configured for '{self._provider_id}'")
        return self.oauth_operations.exchange_for_access(authorization_code, redirect_uri)

    def create_connection(self, source: Union[AccessGrant, ConnectionData]) -> Connection[A]:
        if isinstance(source, ConnectionData):
            return OAuth2Connection(self._service_provider, self._api_adapter, data=source)
        if isinstance(source, AccessGrant):
            return OAuth2Connection(
                self._service_provider,
                self._api_adapter,
                provider_id=self._provider_id,
                provider_user_id=self.extract_provider_user_id(source),
                access_token=source.access_token,
                refresh_token=source.refresh_token,
                expire_time=source.expire_time,
            )
        raise TypeError(f"Cannot create an OAuth 2 connection from {type(source).__name__}")

    def extract_provider_user_id(self, access_grant: AccessGrant) -> Optional[str]:
        return None
