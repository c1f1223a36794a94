"""
Shared fixtures: an in-memory SQLite store and a registry of two fake
providers ("acme" over OAuth 2, "twitter" over OAuth 1) whose API clients
never touch the network.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from connectors.base import ApiAdapter, OAuth1ServiceProvider, OAuth2ServiceProvider
from connectors.data import ConnectionData, UserProfile
from connectors.encryption import NoOpTextEncryptor
from connectors.factory import OAuth1ConnectionFactory, OAuth2ConnectionFactory
from connectors.registry import ConnectionFactoryRegistry
from connectors.sql_repository import SqlUsersConnectionRepository
from connectors.tokens import AccessGrant
from database.session import build_session_factory, init_db


class FakeOAuth2Api:
    def __init__(self, access_token):
        self.access_token = access_token


class FakeOAuth1Api:
    def __init__(self, consumer_key, consumer_secret, access_token, secret):
        self.consumer_key = consumer_key
        self.access_token = access_token
        self.secret = secret


class FakeAdapter(ApiAdapter):
    """Looks the provider user up in a table keyed by access token."""

    def __init__(self, users):
        self.users = users
        self.lookups = 0
        self.statuses = []

    def test(self, api):
        return api.access_token in self.users

    def set_connection_values(self, api, values):
        self.lookups += 1
        user = self.users[api.access_token]
        values.provider_user_id = user["id"]
        values.display_name = user.get("name")
        values.profile_url = f"https://example.com/{user['id']}"
        values.image_url = f"https://example.com/{user['id']}.png"

    def fetch_user_profile(self, api):
        user = self.users[api.access_token]
        return UserProfile(name=user.get("name"), username=user["id"])

    def update_status(self, api, message):
        self.statuses.append((api.access_token, message))


class StubOAuth2Operations:
    """Stands in for ``OAuth2Template`` on the refresh path."""

    def __init__(self, grant=None, error=None):
        self.grant = grant
        self.error = error
        self.refresh_calls = []

    def refresh_access(self, refresh_token, scope=None, params=None):
        self.refresh_calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        return self.grant


@pytest.fixture
def adapter():
    return FakeAdapter(
        {
            "acme-fresh": {"id": "a-100", "name": "Alice"},
            "tw-fresh": {"id": "tw-100", "name": "@alice"},
        }
    )


@pytest.fixture
def oauth2_operations():
    return StubOAuth2Operations(
        grant=AccessGrant(access_token="new-access", refresh_token="new-refresh", expire_time=None)
    )


@pytest.fixture
def acme_factory(oauth2_operations, adapter):
    service_provider = OAuth2ServiceProvider(oauth2_operations, FakeOAuth2Api)
    return OAuth2ConnectionFactory("acme", service_provider, adapter, FakeOAuth2Api)


@pytest.fixture
def twitter_factory(adapter):
    service_provider = OAuth1ServiceProvider("consumer-key", "consumer-secret", None, FakeOAuth1Api)
    return OAuth1ConnectionFactory("twitter", service_provider, adapter, FakeOAuth1Api)


@pytest.fixture
def registry(acme_factory, twitter_factory):
    return ConnectionFactoryRegistry([acme_factory, twitter_factory])


@pytest.fixture
def make_connection(registry):
    """Rehydrate a connection for a provider user with sensible token defaults."""

    def _make(provider_id, provider_user_id, **fields):
        fields.setdefault("access_token", f"{provider_id}-token-{provider_user_id}")
        if provider_id == "twitter":
            fields.setdefault("secret", f"secret-{provider_user_id}")
        fields.setdefault("display_name", provider_user_id)
        data = ConnectionData(provider_id=provider_id, provider_user_id=provider_user_id, **fields)
        return registry.get_connection_factory(provider_id).create_connection(data)

    return _make


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def users_repository(session_factory, registry):
    return SqlUsersConnectionRepository(session_factory, registry, NoOpTextEncryptor())
