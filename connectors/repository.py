"""
Repository contracts for persisted connections.

``ConnectionRepository`` is the per-user view; ``UsersConnectionRepository``
answers cross-user questions (who owns this provider account, which of these
provider accounts belong to local users) and hands out per-user views.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence, Set

from connectors.connection import Connection
from connectors.data import ConnectionKey
from connectors.exceptions import NotConnectedError
from connectors.registry import ConnectionFactoryRegistry
from connectors.tokens import OAuthToken

logger = logging.getLogger(__name__)


class ConnectionSignUp(ABC):
    """Creates a local user from a provider connection during provider sign-in."""

    @abstractmethod
    def execute(self, connection: Connection) -> Optional[str]:
        """Return the new local user id, or None to require explicit sign-up."""
        ...


class ConnectionRepository(ABC):
    """Connections of one local user."""

    def __init__(self, user_id: str, registry: ConnectionFactoryRegistry) -> None:
        if user_id is None:
            raise ValueError("user_id is required")
        self._user_id = user_id
        self._registry = registry

    @property
    def user_id(self) -> str:
        return self._user_id

    # ── Queries ─────────────────────────────────────────────────────────

    @abstractmethod
    def find_all_connections(self) -> Dict[str, List[Connection]]:
        """
        All connections keyed by provider id, each list in rank order.

        Every registered provider appears, with an empty list when the user
        has no connection to it.
        """
        ...

    @abstractmethod
    def find_connections(self, provider_id: str) -> List[Connection]:
        ...

    def find_connections_for_api(self, api_type: type) -> List[Connection]:
        return self.find_connections(self._provider_id_for(api_type))

    @abstractmethod
    def find_connections_to_users(
        self,
        provider_user_ids: Mapping[str, Sequence[str]],
    ) -> Dict[str, List[Optional[Connection]]]:
        """
        Connections to specific provider users.

        Each returned list is aligned with the requested provider user ids;
        positions the user is not connected to hold None.

        Raises
        ------
        ValueError – empty ``provider_user_ids``
        """
        ...

    @abstractmethod
    def get_connection(self, key: ConnectionKey) -> Connection:
        """Raises ``NoSuchConnectionError`` when absent."""
        ...

    def get_connection_for_api(self, api_type: type, provider_user_id: str) -> Connection:
        key = ConnectionKey(
            provider_id=self._provider_id_for(api_type),
            provider_user_id=provider_user_id,
        )
        return self.get_connection(key)

    def get_primary_connection(self, api_type: type) -> Connection:
        connection = self.find_primary_connection(api_type)
        if connection is None:
            raise NotConnectedError(self._provider_id_for(api_type))
        return connection

    def find_primary_connection(self, api_type: type) -> Optional[Connection]:
        return self._find_primary_connection(self._provider_id_for(api_type))

    def is_connected(self, provider_id: str) -> bool:
        return self._find_primary_connection(provider_id) is not None

    def get_access_token(self, provider_id: str) -> Optional[OAuthToken]:
        """Token of the primary connection, or None if the user never connected."""
        connection = self._find_primary_connection(provider_id)
        if connection is None:
            return None
        data = connection.create_data()
        return OAuthToken(value=data.access_token, secret=data.secret)

    def get_provider_user_id(self, provider_id: str) -> Optional[str]:
        connection = self._find_primary_connection(provider_id)
        return connection.key.provider_user_id if connection is not None else None

    # ── Commands ────────────────────────────────────────────────────────

    @abstractmethod
    def add_connection(self, connection: Connection) -> None:
        """Raises ``DuplicateConnectionError`` if the provider account is already linked."""
        ...

    @abstractmethod
    def update_connection(self, connection: Connection) -> None:
        ...

    @abstractmethod
    def remove_connections(self, provider_id: str) -> None:
        ...

    @abstractmethod
    def remove_connection(self, key: ConnectionKey) -> None:
        ...

    # ── Subclassing hooks ───────────────────────────────────────────────

    def _find_primary_connection(self, provider_id: str) -> Optional[Connection]:
        connections = self.find_connections(provider_id)
        return connections[0] if connections else None

    def _provider_id_for(self, api_type: type) -> str:
        return self._registry.get_connection_factory_for_api(api_type).provider_id


class UsersConnectionRepository(ABC):
    """Cross-user queries over all persisted connections."""

    def __init__(
        self,
        registry: ConnectionFactoryRegistry,
        connection_sign_up: Optional[ConnectionSignUp] = None,
    ) -> None:
        self._registry = registry
        self._connection_sign_up = connection_sign_up

    @property
    def connection_sign_up(self) -> Optional[ConnectionSignUp]:
        return self._connection_sign_up

    @connection_sign_up.setter
    def connection_sign_up(self, value: Optional[ConnectionSignUp]) -> None:
        self._connection_sign_up = value

    @abstractmethod
    def find_user_ids_with_connection(self, connection: Connection) -> List[str]:
        """
        Local users linked to this exact provider account.

        With no match and a sign-up policy configured, a new local user is
        created, the connection is stored under it, and ``[new_id]`` is
        returned.  Without a policy the result is empty and nothing is
        written.
        """
        ...

    @abstractmethod
    def find_user_ids_connected_to(self, provider_id: str, provider_user_ids: Set[str]) -> Set[str]:
        ...

    @abstractmethod
    def create_connection_repository(self, user_id: str) -> ConnectionRepository:
        ...

    def _sign_up(self, connection: Connection) -> List[str]:
        if self._connection_sign_up is None:
            return []
        new_user_id = self._connection_sign_up.execute(connection)
        if new_user_id is None:
            return []
        self.create_connection_repository(new_user_id).add_connection(connection)
        logger.info("Signed up local user %s from %s", new_user_id, connection.key)
        return [new_user_id]
