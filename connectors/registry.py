"""
ConnectionFactoryRegistry — maps provider ids and API types to connection factories.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Set

from config.settings import Settings, config
from connectors.exceptions import UnknownProviderError
from connectors.factory import ConnectionFactory
from connectors.providers import github, twitter

logger = logging.getLogger(__name__)


class ConnectionFactoryRegistry:
    """
    Lookup service for connection factories.

    Built once at startup and passed explicitly to the repositories that
    need it; there is no process-wide instance.
    """

    def __init__(self, connection_factories: Optional[Iterable[ConnectionFactory]] = None) -> None:
        self._factories: Dict[str, ConnectionFactory] = {}
        self._api_type_index: Dict[type, str] = {}
        if connection_factories:
            self.set_connection_factories(connection_factories)

    def add_connection_factory(self, factory: ConnectionFactory) -> None:
        if factory.provider_id in self._factories:
            raise ValueError(
                f"A connection factory for provider '{factory.provider_id}' has already been registered"
            )
        if factory.api_type in self._api_type_index:
            raise ValueError(
                f"A connection factory for API [{factory.api_type.__name__}] has already been registered"
            )
        self._factories[factory.provider_id] = factory
        self._api_type_index[factory.api_type] = factory.provider_id
        logger.info(
            "Connection factory registered: %s (%s)",
            factory.provider_id,
            factory.api_type.__name__,
        )

    def set_connection_factories(self, factories: Iterable[ConnectionFactory]) -> None:
        for factory in factories:
            self.add_connection_factory(factory)

    def get_connection_factory(self, provider_id: str) -> ConnectionFactory:
        factory = self._factories.get(provider_id)
        if factory is None:
            raise UnknownProviderError(provider_id)
        return factory

    def get_connection_factory_for_api(self, api_type: type) -> ConnectionFactory:
        provider_id = self._api_type_index.get(api_type)
        if provider_id is None:
            raise UnknownProviderError(getattr(api_type, "__name__", str(api_type)))
        return self._factories[provider_id]

    def registered_provider_ids(self) -> Set[str]:
        return set(self._factories)

    def close(self) -> None:
        for factory in self._factories.values():
            factory.close()


def build_default_registry(settings: Optional[Settings] = None) -> ConnectionFactoryRegistry:
    """Register every bundled provider whose client credentials are configured."""
    settings = settings or config
    registry = ConnectionFactoryRegistry()
    for provider in (github, twitter):
        if provider.is_configured(settings):
            registry.add_connection_factory(provider.create_connection_factory(settings))
        else:
            logger.warning(
                "Provider %s skipped: missing client id or secret",
                provider.PROVIDER_ID,
            )
    return registry
