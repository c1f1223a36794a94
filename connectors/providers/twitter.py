"""
Twitter — OAuth 1.0a provider binding.

Resource requests are signed per request with ``OAuth1Auth``.  Access tokens
do not expire, so connections are never refreshed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from config.settings import Settings
from connectors.base import ApiAdapter, OAuth1ServiceProvider
from connectors.data import ConnectionValues, UserProfile
from connectors.exceptions import ProviderAuthorizationError, ProviderCommunicationError
from connectors.factory import OAuth1ConnectionFactory
from connectors.oauth1 import OAuth1Auth, OAuth1Template
from connectors.providers.api_client import ProviderApiClient, build_api_http_client

logger = logging.getLogger(__name__)

PROVIDER_ID = "twitter"

_OAUTH_BASE = "https://api.twitter.com/oauth"
_TWITTER_API = "https://api.twitter.com/1.1"
_PROFILE_BASE = "https://twitter.com"


class TwitterApi(ProviderApiClient):
    """Twitter REST API signed with the consumer and user credentials."""

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        access_token: str,
        secret: Optional[str],
        http_client: httpx.Client,
    ) -> None:
        super().__init__(
            PROVIDER_ID,
            http_client,
            OAuth1Auth(consumer_key, consumer_secret, access_token, secret),
        )

    def verify_credentials(self) -> Dict[str, Any]:
        return self._request("GET", "/account/verify_credentials.json")

    def update_status(self, message: str) -> Dict[str, Any]:
        return self._request("POST", "/statuses/update.json", data={"status": message})


class TwitterAdapter(ApiAdapter[TwitterApi]):
    def test(self, api: TwitterApi) -> bool:
        try:
            api.verify_credentials()
        except (ProviderAuthorizationError, ProviderCommunicationError):
            return False
        return True

    def set_connection_values(self, api: TwitterApi, values: ConnectionValues) -> None:
        user = api.verify_credentials()
        screen_name = user.get("screen_name")
        values.provider_user_id = user.get("id_str") or str(user["id"])
        values.display_name = f"@{screen_name}" if screen_name else None
        values.profile_url = f"{_PROFILE_BASE}/{screen_name}" if screen_name else None
        values.image_url = user.get("profile_image_url_https")

    def fetch_user_profile(self, api: TwitterApi) -> UserProfile:
        user = api.verify_credentials()
        return UserProfile(name=user.get("name"), username=user.get("screen_name"))

    def update_status(self, api: TwitterApi, message: str) -> None:
        api.update_status(message)


class TwitterConnectionFactory(OAuth1ConnectionFactory[TwitterApi]):
    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        *,
        callback_url: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        api_transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        oauth = OAuth1Template(
            consumer_key,
            consumer_secret,
            f"{_OAUTH_BASE}/request_token",
            f"{_OAUTH_BASE}/authorize",
            f"{_OAUTH_BASE}/access_token",
            authenticate_url=f"{_OAUTH_BASE}/authenticate",
            http_client=http_client,
        )
        self._api_http = build_api_http_client(_TWITTER_API, transport=api_transport)
        service_provider = OAuth1ServiceProvider(
            consumer_key,
            consumer_secret,
            oauth,
            lambda ck, cs, token, secret: TwitterApi(ck, cs, token, secret, self._api_http),
        )
        super().__init__(
            PROVIDER_ID, service_provider, TwitterAdapter(), TwitterApi, callback_url=callback_url
        )

    def close(self) -> None:
        self._api_http.close()
        self.oauth_operations.close()


def is_configured(settings: Settings) -> bool:
    return bool(settings.twitter_consumer_key and settings.twitter_consumer_secret)


def create_connection_factory(settings: Settings) -> TwitterConnectionFactory:
    return TwitterConnectionFactory(
        settings.twitter_consumer_key,
        settings.twitter_consumer_secret,
        callback_url=settings.callback_url(PROVIDER_ID),
    )
