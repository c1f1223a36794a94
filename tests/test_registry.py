"""
Tests for the connection factory registry.
"""

import pytest

from config.settings import Settings
from connectors.base import OAuth2ServiceProvider
from connectors.data import ConnectionData
from connectors.exceptions import UnknownProviderError
from connectors.factory import OAuth2ConnectionFactory
from connectors.providers.github import GitHubApi, GitHubConnectionFactory
from connectors.providers.twitter import TwitterApi, TwitterConnectionFactory
from connectors.registry import ConnectionFactoryRegistry, build_default_registry


class TestConnectionFactoryRegistry:
    def test_lookup_by_provider_and_api_type(self, registry, acme_factory, twitter_factory):
        assert registry.get_connection_factory("acme") is acme_factory
        assert registry.get_connection_factory_for_api(twitter_factory.api_type) is twitter_factory
        assert registry.registered_provider_ids() == {"acme", "twitter"}

    def test_unknown_provider(self, registry):
        with pytest.raises(UnknownProviderError, match="facebook"):
            registry.get_connection_factory("facebook")

    def test_unknown_api_type(self, registry):
        with pytest.raises(UnknownProviderError, match="dict"):
            registry.get_connection_factory_for_api(dict)

    def test_duplicate_provider_id_rejected(self, registry, acme_factory, adapter):
        clash = OAuth2ConnectionFactory("acme", acme_factory.service_provider, adapter, dict)
        with pytest.raises(ValueError, match="already been registered"):
            registry.add_connection_factory(clash)

    def test_duplicate_api_type_rejected(self, registry, acme_factory, adapter):
        clash = OAuth2ConnectionFactory("other", acme_factory.service_provider, adapter, acme_factory.api_type)
        with pytest.raises(ValueError, match="already been registered"):
            registry.add_connection_factory(clash)
        assert "other" not in registry.registered_provider_ids()

    def test_empty_registry(self):
        registry = ConnectionFactoryRegistry()
        assert registry.registered_provider_ids() == set()

    def test_set_connection_factories(self, acme_factory, adapter):
        registry = ConnectionFactoryRegistry()
        other = OAuth2ConnectionFactory(
            "other", OAuth2ServiceProvider(acme_factory.service_provider.oauth_operations, dict), adapter, dict
        )
        registry.set_connection_factories([acme_factory, other])
        assert registry.registered_provider_ids() == {"acme", "other"}


class TestBuildDefaultRegistry:
    def test_nothing_configured(self):
        registry = build_default_registry(Settings(_env_file=None, github_client_id="", twitter_consumer_key=""))
        assert registry.registered_provider_ids() == set()

    def test_configured_providers_registered(self):
        settings = Settings(
            _env_file=None,
            github_client_id="gh-id",
            github_client_secret="gh-secret",
            twitter_consumer_key="tw-key",
            twitter_consumer_secret="tw-secret",
        )
        registry = build_default_registry(settings)

        assert registry.registered_provider_ids() == {"github", "twitter"}
        assert isinstance(registry.get_connection_factory_for_api(GitHubApi), GitHubConnectionFactory)
        assert isinstance(registry.get_connection_factory_for_api(TwitterApi), TwitterConnectionFactory)

    def test_half_configured_provider_skipped(self):
        settings = Settings(_env_file=None, github_client_id="gh-id", github_client_secret="")
        assert "github" not in build_default_registry(settings).registered_provider_ids()

    def test_close_releases_provider_clients(self):
        settings = Settings(_env_file=None, github_client_id="gh-id", github_client_secret="gh-secret")
        registry = build_default_registry(settings)
        connection = registry.get_connection_factory("github").create_connection(
            ConnectionData(provider_id="github", provider_user_id="1", access_token="t")
        )

        registry.close()

        assert connection.api.http_client.is_closed
