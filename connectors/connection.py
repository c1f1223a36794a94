"""
Connections — one authenticated link between a local user and a provider account.

A connection wraps the provider API client bound to its token, knows how to
snapshot itself back into ``ConnectionData`` for persistence, and (OAuth 2
only) how to refresh its access token.  Connections are transient: they are
built per request from a handshake result or a repository row and never
cached.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from connectors.base import ApiAdapter, OAuth1ServiceProvider, OAuth2ServiceProvider
from connectors.data import ConnectionData, ConnectionKey, ConnectionValues, UserProfile
from connectors.exceptions import RefreshNotSupportedError, UnsupportedOperationError

logger = logging.getLogger(__name__)

A = TypeVar("A")


def _now_millis() -> int:
    return int(time.time() * 1000)


class Connection(ABC, Generic[A]):
    """Protocol-neutral part of a connection: identity and profile values."""

    def __init__(self, api_adapter: ApiAdapter[A], data: Optional[ConnectionData] = None) -> None:
        self._api_adapter = api_adapter
        self._lock = threading.RLock()
        self._key: Optional[ConnectionKey] = None
        self._display_name: Optional[str] = None
        self._profile_url: Optional[str] = None
        self._image_url: Optional[str] = None
        self._values_initialized = False
        if data is not None:
            self._key = data.key
            self._display_name = data.display_name
            self._profile_url = data.profile_url
            self._image_url = data.image_url
            self._values_initialized = True

    # ── Identity ────────────────────────────────────────────────────────

    @property
    def key(self) -> ConnectionKey:
        return self._key

    @property
    def provider_id(self) -> str:
        return self._key.provider_id

    @property
    def display_name(self) -> Optional[str]:
        with self._lock:
            self._init_values()
            return self._display_name

    @property
    def profile_url(self) -> Optional[str]:
        with self._lock:
            self._init_values()
            return self._profile_url

    @property
    def image_url(self) -> Optional[str]:
        with self._lock:
            self._init_values()
            return self._image_url

    # ── Provider interaction ────────────────────────────────────────────

    def test(self) -> bool:
        return self._api_adapter.test(self.api)

    def sync(self) -> None:
        """Re-read display name and profile URLs from the provider."""
        with self._lock:
            self._set_values()

    def fetch_user_profile(self) -> UserProfile:
        return self._api_adapter.fetch_user_profile(self.api)

    def update_status(self, message: str) -> None:
        self._api_adapter.update_status(self.api, message)

    def has_expired(self) -> bool:
        return False

    def refresh(self) -> None:
        raise UnsupportedOperationError(f"Connections to '{self.provider_id}' cannot be refreshed")

    # ── Subclassing hooks ───────────────────────────────────────────────

    @property
    @abstractmethod
    def api(self) -> A:
        """The provider API client, authorized with the currently held token."""
        ...

    @abstractmethod
    def create_data(self) -> ConnectionData:
        ...

    def _init_key(self, provider_id: str, provider_user_id: Optional[str]) -> None:
        """Set the key; ask the provider for its user id when the grant did not carry one."""
        if provider_user_id is None:
            provider_user_id = self._set_values().provider_user_id
        self._key = ConnectionKey(provider_id=provider_id, provider_user_id=provider_user_id)

    # ── Internal helpers ───────────────────────────────────────────────

    def _init_values(self) -> None:
        if not self._values_initialized:
            self._set_values()

    def _set_values(self) -> ConnectionValues:
        values = ConnectionValues()
        self._api_adapter.set_connection_values(self.api, values)
        self._display_name = values.display_name
        self._profile_url = values.profile_url
        self._image_url = values.image_url
        self._values_initialized = True
        return values

    # ── Identity protocol ───────────────────────────────────────────────

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Connection):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._key})"


class OAuth1Connection(Connection[A]):
    """Connection authorized with an OAuth 1 access token and secret; never expires."""

    def __init__(
        self,
        service_provider: OAuth1ServiceProvider[A],
        api_adapter: ApiAdapter[A],
        *,
        provider_id: Optional[str] = None,
        provider_user_id: Optional[str] = None,
        access_token: Optional[str] = None,
        secret: Optional[str] = None,
        data: Optional[ConnectionData] = None,
    ) -> None:
        super().__init__(api_adapter, data)
        self._service_provider = service_provider
        if data is not None:
            self._access_token = data.access_token
            self._secret = data.secret
            self._api = service_provider.get_api(self._access_token, self._secret)
        else:
            self._access_token = access_token
            self._secret = secret
            self._api = service_provider.get_api(self._access_token, self._secret)
            self._init_key(provider_id, provider_user_id)

    @property
    def api(self) -> A:
        return self._api

    def refresh(self) -> None:
        raise UnsupportedOperationError("OAuth 1 connections cannot be refreshed")

    def create_data(self) -> ConnectionData:
        with self._lock:
            return ConnectionData(
                provider_id=self._key.provider_id,
                provider_user_id=self._key.provider_user_id,
                display_name=self.display_name,
                profile_url=self.profile_url,
                image_url=self.image_url,
                access_token=self._access_token,
                secret=self._secret,
            )


class OAuth2Connection(Connection[A]):
    """
    Connection authorized with an OAuth 2 access token.

    ``refresh`` swaps in a new access/refresh pair in place; the caller
    persists the result with ``ConnectionRepository.update_connection``.
    """

    def __init__(
        self,
        service_provider: OAuth2ServiceProvider[A],
        api_adapter: ApiAdapter[A],
        *,
        provider_id: Optional[str] = None,
        provider_user_id: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        expire_time: Optional[int] = None,
        data: Optional[ConnectionData] = None,
    ) -> None:
        super().__init__(api_adapter, data)
        self._service_provider = service_provider
        if data is not None:
            self._init_access_tokens(data.access_token, data.refresh_token, data.expire_time)
        else:
            self._init_access_tokens(access_token, refresh_token, expire_time)
            self._init_key(provider_id, provider_user_id)

    @property
    def api(self) -> A:
        with self._lock:
            return self._api

    @property
    def expire_time(self) -> Optional[int]:
        return self._expire_time

    def has_expired(self) -> bool:
        with self._lock:
            return self._expire_time is not None and _now_millis() >= self._expire_time

    def refresh(self) -> None:
        with self._lock:
            if not self._refresh_token:
                raise RefreshNotSupportedError(self.provider_id)
            grant = self._service_provider.oauth_operations.refresh_access(self._refresh_token)
            # Providers that do not rotate refresh tokens omit it from the response.
            self._init_access_tokens(
                grant.access_token,
                grant.refresh_token or self._refresh_token,
                grant.expire_time,
            )
            logger.info("Refreshed access token for %s", self._key)

    def create_data(self) -> ConnectionData:
        with self._lock:
            return ConnectionData(
                provider_id=self._key.provider_id,
                provider_user_id=self._key.provider_user_id,
                display_name=self.display_name,
                profile_url=self.profile_url,
                image_url=self.image_url,
                access_token=self._access_token,
                refresh_token=self._refresh_token,
                expire_time=self._expire_time,
            )

    def _init_access_tokens(
        self,
        access_token: str,
        refresh_token: Optional[str],
        expire_time: Optional[int],
    ) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token
        # 0 is how stores spell "never expires"
        self._expire_time = expire_time or None
        self._api = self._service_provider.get_api(access_token)
