"""
Tests for connections and connection factories.
"""

import time

import pytest

from connectors.data import ConnectionData, ConnectionKey
from connectors.exceptions import (
    ProviderAuthorizationError,
    RefreshNotSupportedError,
    UnsupportedOperationError,
)
from connectors.tokens import AccessGrant, OAuthToken


def _now_millis():
    return int(time.time() * 1000)


class TestRehydration:
    def test_oauth2_round_trip(self, acme_factory):
        data = ConnectionData(
            provider_id="acme",
            provider_user_id="a1",
            display_name="Alice",
            profile_url="https://example.com/a1",
            image_url="https://example.com/a1.png",
            access_token="at",
            refresh_token="rt",
            expire_time=1_900_000_000_000,
        )
        assert acme_factory.create_connection(data).create_data() == data

    def test_oauth1_round_trip(self, twitter_factory):
        data = ConnectionData(
            provider_id="twitter",
            provider_user_id="tw1",
            display_name="@tw1",
            access_token="at",
            secret="as",
        )
        assert twitter_factory.create_connection(data).create_data() == data

    def test_rehydration_does_not_call_provider(self, acme_factory, adapter):
        data = ConnectionData(provider_id="acme", provider_user_id="a1", access_token="at")
        connection = acme_factory.create_connection(data)
        assert connection.display_name is None
        assert adapter.lookups == 0

    def test_api_bound_to_token(self, twitter_factory):
        data = ConnectionData(provider_id="twitter", provider_user_id="tw1", access_token="at", secret="as")
        api = twitter_factory.create_connection(data).api
        assert (api.consumer_key, api.access_token, api.secret) == ("consumer-key", "at", "as")

    def test_unsupported_source_rejected(self, acme_factory, twitter_factory):
        with pytest.raises(TypeError):
            acme_factory.create_connection(OAuthToken(value="at"))
        with pytest.raises(TypeError):
            twitter_factory.create_connection(AccessGrant(access_token="at"))


class TestFreshConnection:
    def test_oauth2_grant_asks_adapter_for_user(self, acme_factory, adapter):
        connection = acme_factory.create_connection(AccessGrant(access_token="acme-fresh", refresh_token="r"))

        assert connection.key == ConnectionKey(provider_id="acme", provider_user_id="a-100")
        assert connection.display_name == "Alice"
        assert connection.profile_url == "https://example.com/a-100"
        assert adapter.lookups == 1

    def test_oauth1_token_asks_adapter_for_user(self, twitter_factory):
        connection = twitter_factory.create_connection(OAuthToken(value="tw-fresh", secret="s"))

        data = connection.create_data()
        assert data.provider_user_id == "tw-100"
        assert data.display_name == "@alice"
        assert data.secret == "s"

    def test_sync_rereads_values(self, acme_factory, adapter):
        data = ConnectionData(provider_id="acme", provider_user_id="a-100", access_token="acme-fresh")
        connection = acme_factory.create_connection(data)

        connection.sync()

        assert connection.display_name == "Alice"
        assert connection.image_url == "https://example.com/a-100.png"

    def test_delegates_to_adapter(self, acme_factory, adapter):
        connection = acme_factory.create_connection(AccessGrant(access_token="acme-fresh"))

        assert connection.test() is True
        assert connection.fetch_user_profile().name == "Alice"
        connection.update_status("hello")
        assert adapter.statuses == [("acme-fresh", "hello")]


class TestExpiryAndRefresh:
    def test_has_expired(self, acme_factory):
        past = ConnectionData(provider_id="acme", provider_user_id="a1", access_token="at", expire_time=1)
        future = past.model_copy(update={"expire_time": _now_millis() + 60_000})
        never = past.model_copy(update={"expire_time": None})

        assert acme_factory.create_connection(past).has_expired() is True
        assert acme_factory.create_connection(future).has_expired() is False
        assert acme_factory.create_connection(never).has_expired() is False

    def test_zero_expire_time_never_expires(self, acme_factory, oauth2_operations):
        data = ConnectionData(
            provider_id="acme", provider_user_id="a1", access_token="at", refresh_token="r1", expire_time=0
        )
        connection = acme_factory.create_connection(data)

        assert connection.has_expired() is False
        assert connection.expire_time is None
        assert oauth2_operations.refresh_calls == []

    def test_oauth1_never_expires_and_cannot_refresh(self, twitter_factory):
        data = ConnectionData(provider_id="twitter", provider_user_id="tw1", access_token="at", secret="as")
        connection = twitter_factory.create_connection(data)

        assert connection.has_expired() is False
        with pytest.raises(UnsupportedOperationError):
            connection.refresh()

    def test_refresh_rotates_tokens(self, acme_factory, oauth2_operations):
        data = ConnectionData(provider_id="acme", provider_user_id="a1", access_token="old", refresh_token="r1")
        connection = acme_factory.create_connection(data)

        connection.refresh()

        refreshed = connection.create_data()
        assert oauth2_operations.refresh_calls == ["r1"]
        assert refreshed.access_token == "new-access"
        assert refreshed.refresh_token == "new-refresh"
        assert connection.api.access_token == "new-access"

    def test_refresh_keeps_refresh_token_when_not_rotated(self, acme_factory, oauth2_operations):
        oauth2_operations.grant = AccessGrant(access_token="new-access", expire_time=_now_millis() + 3_600_000)
        data = ConnectionData(provider_id="acme", provider_user_id="a1", access_token="old", refresh_token="r1")
        connection = acme_factory.create_connection(data)

        connection.refresh()

        assert connection.create_data().refresh_token == "r1"
        assert connection.has_expired() is False

    def test_refresh_without_refresh_token_fails(self, acme_factory, oauth2_operations):
        data = ConnectionData(provider_id="acme", provider_user_id="a1", access_token="old")
        connection = acme_factory.create_connection(data)

        with pytest.raises(RefreshNotSupportedError, match="acme"):
            connection.refresh()

        assert oauth2_operations.refresh_calls == []
        assert connection.create_data() == data

    def test_refresh_rejection_propagates(self, acme_factory, oauth2_operations):
        oauth2_operations.error = ProviderAuthorizationError("refresh token revoked")
        data = ConnectionData(provider_id="acme", provider_user_id="a1", access_token="old", refresh_token="r1")
        connection = acme_factory.create_connection(data)

        with pytest.raises(ProviderAuthorizationError, match="revoked"):
            connection.refresh()
        assert connection.create_data().access_token == "old"


class TestIdentity:
    def test_equality_by_key(self, acme_factory):
        a = acme_factory.create_connection(
            ConnectionData(provider_id="acme", provider_user_id="a1", access_token="x")
        )
        b = acme_factory.create_connection(
            ConnectionData(provider_id="acme", provider_user_id="a1", access_token="y")
        )
        c = acme_factory.create_connection(
            ConnectionData(provider_id="acme", provider_user_id="a2", access_token="x")
        )
        assert a == b
        assert a != c
        assert len({a, b, c}) == 2

    def test_key_string(self):
        assert str(ConnectionKey(provider_id="acme", provider_user_id="a1")) == "acme:a1"


class TestFactories:
    def test_oauth2_factory_has_no_request_token_step(self, acme_factory):
        with pytest.raises(UnsupportedOperationError):
            acme_factory.fetch_request_token("https://app.example.com/callback")

    def test_factory_properties(self, twitter_factory, acme_factory):
        assert twitter_factory.provider_id == "twitter"
        assert acme_factory.api_type.__name__ == "FakeOAuth2Api"
