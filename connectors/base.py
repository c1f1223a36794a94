"""
Service-provider abstractions shared by every provider binding.

A ``ServiceProvider`` owns the provider's OAuth operations and knows how to
build an authorized API client from a token.  An ``ApiAdapter`` maps that
client back onto the provider-neutral connection model (user id, display
name, profile, status updates).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, TypeVar

from connectors.data import ConnectionValues, UserProfile

A = TypeVar("A")


class ServiceProvider(ABC, Generic[A]):
    """Base for all service providers."""

    @property
    @abstractmethod
    def oauth_operations(self) -> Any:
        """The protocol-specific operations (``OAuth1Template`` / ``OAuth2Template``)."""
        ...


class OAuth1ServiceProvider(ServiceProvider[A]):
    """
    OAuth 1 provider.

    Parameters
    ----------
    api_factory : callable
        ``api_factory(consumer_key, consumer_secret, access_token, secret)``
        returning the API client bound to those credentials.
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        oauth_operations: Any,
        api_factory: Callable[[str, str, str, Optional[str]], A],
    ) -> None:
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._oauth_operations = oauth_operations
        self._api_factory = api_factory

    @property
    def oauth_operations(self) -> Any:
        return self._oauth_operations

    @property
    def consumer_key(self) -> str:
        return self._consumer_key

    def get_api(self, access_token: str, secret: Optional[str]) -> A:
        return self._api_factory(self._consumer_key, self._consumer_secret, access_token, secret)


class OAuth2ServiceProvider(ServiceProvider[A]):
    """
    OAuth 2 provider.

    Parameters
    ----------
    api_factory : callable
        ``api_factory(access_token)`` returning the API client.
    """

    def __init__(self, oauth_operations: Any, api_factory: Callable[[str], A]) -> None:
        self._oauth_operations = oauth_operations
        self._api_factory = api_factory

    @property
    def oauth_operations(self) -> Any:
        return self._oauth_operations

    def get_api(self, access_token: str) -> A:
        return self._api_factory(access_token)


class ApiAdapter(ABC, Generic[A]):
    """Bridges a provider API client onto the connection model."""

    @abstractmethod
    def test(self, api: A) -> bool:
        """Return True if the API is reachable with the current credentials."""
        ...

    @abstractmethod
    def set_connection_values(self, api: A, values: ConnectionValues) -> None:
        """Fill provider user id, display name, profile and image URLs."""
        ...

    @abstractmethod
    def fetch_user_profile(self, api: A) -> UserProfile:
        ...

    def update_status(self, api: A, message: str) -> None:
        """
        Post a status message for the connected user.

        Providers without a status concept ignore the call.
        """
        return None
