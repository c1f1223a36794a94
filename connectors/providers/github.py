"""
GitHub — OAuth 2 provider binding.

Only what a connection needs: the current user's record, mapped onto
connection values and a ``UserProfile``.  Tokens from classic OAuth apps
never expire; GitHub Apps with expiring user tokens also return a refresh
token, which ``OAuth2Connection.refresh`` uses.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from config.settings import Settings
from connectors.base import ApiAdapter, OAuth2ServiceProvider
from connectors.data import ConnectionValues, UserProfile
from connectors.exceptions import ProviderAuthorizationError, ProviderCommunicationError
from connectors.factory import OAuth2ConnectionFactory
from connectors.oauth2 import BearerAuth, OAuth2Template
from connectors.providers.api_client import ProviderApiClient, build_api_http_client

logger = logging.getLogger(__name__)

PROVIDER_ID = "github"

# GitHub OAuth2 endpoints
_GH_AUTH_URL = "https://github.com/login/oauth/authorize"
_GH_TOKEN_URL = "https://github.com/login/oauth/access_token"
_GH_API = "https://api.github.com"


class GitHubApi(ProviderApiClient):
    """GitHub REST API bound to one user's access token."""

    def __init__(self, access_token: str, http_client: httpx.Client) -> None:
        super().__init__(PROVIDER_ID, http_client, BearerAuth(access_token))

    def get_user(self) -> Dict[str, Any]:
        return self._request("GET", "/user")


class GitHubAdapter(ApiAdapter[GitHubApi]):
    def test(self, api: GitHubApi) -> bool:
        try:
            api.get_user()
        except (ProviderAuthorizationError, ProviderCommunicationError):
            return False
        return True

    def set_connection_values(self, api: GitHubApi, values: ConnectionValues) -> None:
        user = api.get_user()
        values.provider_user_id = str(user["id"])
        values.display_name = user.get("login")
        values.profile_url = user.get("html_url")
        values.image_url = user.get("avatar_url")

    def fetch_user_profile(self, api: GitHubApi) -> UserProfile:
        user = api.get_user()
        name = user.get("name") or None
        first_name, last_name = None, None
        if name:
            first_name, _, last_name = name.partition(" ")
        return UserProfile(
            name=name,
            first_name=first_name,
            last_name=last_name or None,
            email=user.get("email"),
            username=user.get("login"),
        )


class GitHubConnectionFactory(OAuth2ConnectionFactory[GitHubApi]):
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        callback_url: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        api_transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        oauth = OAuth2Template(
            client_id,
            client_secret,
            _GH_AUTH_URL,
            _GH_TOKEN_URL,
            http_client=http_client,
        )
        self._api_http = build_api_http_client(
            _GH_API,
            headers={"Accept": "application/vnd.github+json"},
            transport=api_transport,
        )
        service_provider = OAuth2ServiceProvider(
            oauth,
            lambda access_token: GitHubApi(access_token, self._api_http),
        )
        super().__init__(
            PROVIDER_ID, service_provider, GitHubAdapter(), GitHubApi, callback_url=callback_url
        )

    def close(self) -> None:
        self._api_http.close()
        self.oauth_operations.close()


def is_configured(settings: Settings) -> bool:
    return bool(settings.github_client_id and settings.github_client_secret)


def create_connection_factory(settings: Settings) -> GitHubConnectionFactory:
    return GitHubConnectionFactory(
        settings.github_client_id,
        settings.github_client_secret,
        callback_url=settings.callback_url(PROVIDER_ID),
    )
