"""
In-memory connection repositories.

Same contract as the SQL repositories, backed by a dict guarded by a lock.
Useful in tests and single-process tools; nothing survives a restart and
tokens are kept as plaintext.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Mapping, Optional, Sequence, Set

from connectors.connection import Connection
from connectors.data import ConnectionData, ConnectionKey
from connectors.exceptions import DuplicateConnectionError, NoSuchConnectionError
from connectors.registry import ConnectionFactoryRegistry
from connectors.repository import ConnectionRepository, ConnectionSignUp, UsersConnectionRepository

# user id -> provider id -> connection data in rank order
_Store = Dict[str, Dict[str, List[ConnectionData]]]


class InMemoryUsersConnectionRepository(UsersConnectionRepository):
    def __init__(
        self,
        registry: ConnectionFactoryRegistry,
        connection_sign_up: Optional[ConnectionSignUp] = None,
    ) -> None:
        super().__init__(registry, connection_sign_up)
        self._store: _Store = {}
        self._lock = threading.RLock()

    def find_user_ids_with_connection(self, connection: Connection) -> List[str]:
        key = connection.key
        with self._lock:
            user_ids = [
                user_id
                for user_id, providers in self._store.items()
                if any(data.key == key for data in providers.get(key.provider_id, []))
            ]
        if user_ids:
            return sorted(user_ids)
        return self._sign_up(connection)

    def find_user_ids_connected_to(self, provider_id: str, provider_user_ids: Set[str]) -> Set[str]:
        with self._lock:
            return {
                user_id
                for user_id, providers in self._store.items()
                if any(data.provider_user_id in provider_user_ids for data in providers.get(provider_id, []))
            }

    def create_connection_repository(self, user_id: str) -> "InMemoryConnectionRepository":
        if user_id is None:
            raise ValueError("user_id cannot be None")
        return InMemoryConnectionRepository(user_id, self._registry, self._store, self._lock)


class InMemoryConnectionRepository(ConnectionRepository):
    """
    One user's slice of an in-memory store.

    Built standalone it owns a private store; built through
    ``InMemoryUsersConnectionRepository`` it shares the parent's.
    """

    def __init__(
        self,
        user_id: str,
        registry: ConnectionFactoryRegistry,
        store: Optional[_Store] = None,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        super().__init__(user_id, registry)
        self._store = store if store is not None else {}
        self._lock = lock or threading.RLock()

    def find_all_connections(self) -> Dict[str, List[Connection]]:
        with self._lock:
            providers = self._providers()
            result: Dict[str, List[Connection]] = {
                provider_id: [] for provider_id in sorted(self._registry.registered_provider_ids())
            }
            for provider_id in sorted(providers):
                result[provider_id] = [self._rehydrate(data) for data in providers[provider_id]]
        return result

    def find_connections(self, provider_id: str) -> List[Connection]:
        with self._lock:
            return [self._rehydrate(data) for data in self._providers().get(provider_id, [])]

    def find_connections_to_users(
        self,
        provider_user_ids: Mapping[str, Sequence[str]],
    ) -> Dict[str, List[Optional[Connection]]]:
        if not provider_user_ids:
            raise ValueError("Unable to execute find: no provider user ids provided")
        result: Dict[str, List[Optional[Connection]]] = {}
        with self._lock:
            providers = self._providers()
            for provider_id, ids in provider_user_ids.items():
                by_user = {data.provider_user_id: data for data in providers.get(provider_id, [])}
                result[provider_id] = [
                    self._rehydrate(by_user[puid]) if puid in by_user else None for puid in ids
                ]
        return result

    def get_connection(self, key: ConnectionKey) -> Connection:
        with self._lock:
            for data in self._providers().get(key.provider_id, []):
                if data.key == key:
                    return self._rehydrate(data)
        raise NoSuchConnectionError(key)

    def add_connection(self, connection: Connection) -> None:
        data = connection.create_data()
        with self._lock:
            entries = self._store.setdefault(self._user_id, {}).setdefault(data.provider_id, [])
            if any(existing.key == data.key for existing in entries):
                raise DuplicateConnectionError(data.key)
            entries.append(data)

    def update_connection(self, connection: Connection) -> None:
        data = connection.create_data()
        with self._lock:
            entries = self._providers().get(data.provider_id, [])
            for i, existing in enumerate(entries):
                if existing.key == data.key:
                    entries[i] = data
                    return

    def remove_connections(self, provider_id: str) -> None:
        with self._lock:
            self._providers().pop(provider_id, None)

    def remove_connection(self, key: ConnectionKey) -> None:
        with self._lock:
            entries = self._providers().get(key.provider_id)
            if entries is None:
                return
            entries[:] = [data for data in entries if data.key != key]
            if not entries:
                del self._providers()[key.provider_id]

    # ── Internal helpers ───────────────────────────────────────────────

    def _providers(self) -> Dict[str, List[ConnectionData]]:
        return self._store.get(self._user_id, {})

    def _rehydrate(self, data: ConnectionData) -> Connection:
        return self._registry.get_connection_factory(data.provider_id).create_connection(data)
