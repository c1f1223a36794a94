"""
SQL-backed connection repositories.

Rows live in the ``user_connections`` table (see ``database.models``); every
operation runs in its own transaction, committed before the call returns.
Token columns pass through the injected ``TextEncryptor`` on the way in and
out.  The statements themselves come from a ``ConnectionQueries`` object so
deployments with a prefixed or differently named table can supply their own.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from pydantic import BaseModel, ConfigDict
from sqlalchemy import bindparam, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from connectors.connection import Connection
from connectors.data import ConnectionData, ConnectionKey
from config.settings import Settings, config
from connectors.encryption import TextEncryptor, decrypt_if_present, encrypt_if_present, encryptor_from_settings
from connectors.exceptions import DuplicateConnectionError, NoSuchConnectionError
from connectors.registry import ConnectionFactoryRegistry, build_default_registry
from connectors.repository import ConnectionRepository, ConnectionSignUp, UsersConnectionRepository
from connectors.tokens import OAuthToken
from database.models import UserConnection
from database.session import build_engine, build_session_factory, init_db

logger = logging.getLogger(__name__)

_QUERY_TEMPLATES: Dict[str, str] = {
    "account_connections_query": (
        "select user_id, provider_id, provider_user_id, display_name, profile_url, image_url, "
        "access_token, secret, refresh_token, expire_time from {table}"
    ),
    "provider_account_id_query": (
        "select user_id from {table} where provider_id = :provider_id and provider_user_id = :provider_user_id"
    ),
    "connection_exists_query": (
        "select count(*) from {table} where user_id = :user_id and provider_id = :provider_id"
    ),
    "next_rank_query": (
        "select coalesce(max(rank) + 1, 1) from {table} where user_id = :user_id and provider_id = :provider_id"
    ),
    "create_connection_query": (
        "insert into {table} (user_id, provider_id, provider_user_id, rank, display_name, profile_url, "
        "image_url, access_token, secret, refresh_token, expire_time) values (:user_id, :provider_id, "
        ":provider_user_id, :rank, :display_name, :profile_url, :image_url, :access_token, :secret, "
        ":refresh_token, :expire_time)"
    ),
    "update_connection_query": (
        "update {table} set display_name = :display_name, profile_url = :profile_url, "
        "image_url = :image_url, access_token = :access_token, secret = :secret, "
        "refresh_token = :refresh_token, expire_time = :expire_time "
        "where user_id = :user_id and provider_id = :provider_id and provider_user_id = :provider_user_id"
    ),
    "remove_connection_query": (
        "delete from {table} where user_id = :user_id and provider_id = :provider_id "
        "and provider_user_id = :provider_user_id"
    ),
    "remove_connections_query": (
        "delete from {table} where user_id = :user_id and provider_id = :provider_id"
    ),
    "access_token_query": (
        "select access_token, secret from {table} where user_id = :user_id and provider_id = :provider_id "
        "order by rank"
    ),
    "users_connected_to_query": (
        "select user_id from {table} where provider_id = :provider_id and provider_user_id in :provider_user_ids"
    ),
}

_DEFAULT_TABLE = UserConnection.__tablename__


def _default(name: str) -> str:
    return _QUERY_TEMPLATES[name].format(table=_DEFAULT_TABLE)


class ConnectionQueries(BaseModel):
    """
    SQL used by the repositories, with named parameters.

    ``account_connections_query`` is the base ``select`` that the per-user
    lookups extend with their own ``where``/``order by`` clauses.
    """

    model_config = ConfigDict(frozen=True)

    account_connections_query: str = _default("account_connections_query")
    provider_account_id_query: str = _default("provider_account_id_query")
    connection_exists_query: str = _default("connection_exists_query")
    next_rank_query: str = _default("next_rank_query")
    create_connection_query: str = _default("create_connection_query")
    update_connection_query: str = _default("update_connection_query")
    remove_connection_query: str = _default("remove_connection_query")
    remove_connections_query: str = _default("remove_connections_query")
    access_token_query: str = _default("access_token_query")
    users_connected_to_query: str = _default("users_connected_to_query")

    @classmethod
    def for_table(cls, table_name: str) -> "ConnectionQueries":
        """Default statements rendered against another table name."""
        return cls(**{name: template.format(table=table_name) for name, template in _QUERY_TEMPLATES.items()})


def _is_duplicate_key(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) == "23505" or getattr(orig, "sqlstate", None) == "23505":
        return True
    message = str(orig).lower()
    return "unique" in message or "duplicate" in message


class SqlUsersConnectionRepository(UsersConnectionRepository):
    """
    Cross-user repository over a SQL table.

    Parameters
    ----------
    session_factory : sessionmaker
        Produces sessions bound to the connection store.
    registry : ConnectionFactoryRegistry
        Rehydrates rows into connections.
    encryptor : TextEncryptor
        Applied to access token, secret and refresh token columns.
    connection_sign_up : ConnectionSignUp, optional
        Implicit sign-up policy for provider sign-in.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        registry: ConnectionFactoryRegistry,
        encryptor: TextEncryptor,
        *,
        connection_sign_up: Optional[ConnectionSignUp] = None,
        queries: Optional[ConnectionQueries] = None,
    ) -> None:
        super().__init__(registry, connection_sign_up)
        self._session_factory = session_factory
        self._encryptor = encryptor
        self._queries = queries or ConnectionQueries()

    def find_user_ids_with_connection(self, connection: Connection) -> List[str]:
        key = connection.key
        with self._session_factory() as session:
            user_ids = session.execute(
                text(self._queries.provider_account_id_query),
                {"provider_id": key.provider_id, "provider_user_id": key.provider_user_id},
            ).scalars().all()
        if user_ids:
            return list(user_ids)
        return self._sign_up(connection)

    def find_user_ids_connected_to(self, provider_id: str, provider_user_ids: Set[str]) -> Set[str]:
        if not provider_user_ids:
            return set()
        stmt = text(self._queries.users_connected_to_query).bindparams(
            bindparam("provider_user_ids", expanding=True)
        )
        with self._session_factory() as session:
            rows = session.execute(
                stmt,
                {"provider_id": provider_id, "provider_user_ids": sorted(provider_user_ids)},
            ).scalars().all()
        return set(rows)

    def create_connection_repository(self, user_id: str) -> "SqlConnectionRepository":
        if user_id is None:
            raise ValueError("user_id cannot be None")
        return SqlConnectionRepository(
            user_id,
            self._session_factory,
            self._registry,
            self._encryptor,
            queries=self._queries,
        )


class SqlConnectionRepository(ConnectionRepository):
    """Connections of one local user, stored in a SQL table."""

    def __init__(
        self,
        user_id: str,
        session_factory: sessionmaker,
        registry: ConnectionFactoryRegistry,
        encryptor: TextEncryptor,
        *,
        queries: Optional[ConnectionQueries] = None,
    ) -> None:
        super().__init__(user_id, registry)
        self._session_factory = session_factory
        self._encryptor = encryptor
        self._queries = queries or ConnectionQueries()

    # ── Queries ─────────────────────────────────────────────────────────

    def find_all_connections(self) -> Dict[str, List[Connection]]:
        result: Dict[str, List[Connection]] = {
            provider_id: [] for provider_id in sorted(self._registry.registered_provider_ids())
        }
        for connection in self._select(
            "where user_id = :user_id order by provider_id, rank",
            {"user_id": self._user_id},
        ):
            result.setdefault(connection.provider_id, []).append(connection)
        return result

    def find_connections(self, provider_id: str) -> List[Connection]:
        return self._select(
            "where user_id = :user_id and provider_id = :provider_id order by rank",
            {"user_id": self._user_id, "provider_id": provider_id},
        )

    def find_connections_to_users(
        self,
        provider_user_ids: Mapping[str, Sequence[str]],
    ) -> Dict[str, List[Optional[Connection]]]:
        if not provider_user_ids:
            raise ValueError("Unable to execute find: no provider user ids provided")

        requested = {provider_id: list(ids) for provider_id, ids in provider_user_ids.items()}
        clauses: List[str] = []
        params: Dict[str, Any] = {"user_id": self._user_id}
        expanding = []
        for i, (provider_id, ids) in enumerate(requested.items()):
            clauses.append(f"(provider_id = :provider_id_{i} and provider_user_id in :provider_user_ids_{i})")
            params[f"provider_id_{i}"] = provider_id
            params[f"provider_user_ids_{i}"] = ids
            expanding.append(bindparam(f"provider_user_ids_{i}", expanding=True))

        connections = self._select(
            f"where user_id = :user_id and ({' or '.join(clauses)}) order by provider_id, rank",
            params,
            expanding,
        )

        result: Dict[str, List[Optional[Connection]]] = {
            provider_id: [None] * len(ids) for provider_id, ids in requested.items()
        }
        for connection in connections:
            slots = result[connection.provider_id]
            for index, provider_user_id in enumerate(requested[connection.provider_id]):
                if provider_user_id == connection.key.provider_user_id:
                    slots[index] = connection
        return result

    def get_connection(self, key: ConnectionKey) -> Connection:
        connections = self._select(
            "where user_id = :user_id and provider_id = :provider_id and provider_user_id = :provider_user_id",
            {
                "user_id": self._user_id,
                "provider_id": key.provider_id,
                "provider_user_id": key.provider_user_id,
            },
        )
        if not connections:
            raise NoSuchConnectionError(key)
        return connections[0]

    def is_connected(self, provider_id: str) -> bool:
        with self._session_factory() as session:
            count = session.execute(
                text(self._queries.connection_exists_query),
                {"user_id": self._user_id, "provider_id": provider_id},
            ).scalar_one()
        return count > 0

    def get_access_token(self, provider_id: str) -> Optional[OAuthToken]:
        with self._session_factory() as session:
            row = session.execute(
                text(self._queries.access_token_query),
                {"user_id": self._user_id, "provider_id": provider_id},
            ).first()
        if row is None:
            return None
        return OAuthToken(
            value=self._encryptor.decrypt(row.access_token),
            secret=decrypt_if_present(self._encryptor, row.secret),
        )

    # ── Commands ────────────────────────────────────────────────────────

    def add_connection(self, connection: Connection) -> None:
        data = connection.create_data()
        try:
            with self._session_factory.begin() as session:
                rank = session.execute(
                    text(self._queries.next_rank_query),
                    {"user_id": self._user_id, "provider_id": data.provider_id},
                ).scalar_one()
                session.execute(
                    text(self._queries.create_connection_query),
                    {**self._row_params(data), "rank": rank},
                )
        except IntegrityError as exc:
            if _is_duplicate_key(exc):
                raise DuplicateConnectionError(data.key) from exc
            raise
        logger.info("Added %s connection for user %s at rank %s", data.key, self._user_id, rank)

    def update_connection(self, connection: Connection) -> None:
        data = connection.create_data()
        with self._session_factory.begin() as session:
            session.execute(text(self._queries.update_connection_query), self._row_params(data))
        logger.debug("Updated %s connection for user %s", data.key, self._user_id)

    def remove_connections(self, provider_id: str) -> None:
        with self._session_factory.begin() as session:
            session.execute(
                text(self._queries.remove_connections_query),
                {"user_id": self._user_id, "provider_id": provider_id},
            )
        logger.info("Removed all %s connections for user %s", provider_id, self._user_id)

    def remove_connection(self, key: ConnectionKey) -> None:
        with self._session_factory.begin() as session:
            session.execute(
                text(self._queries.remove_connection_query),
                {
                    "user_id": self._user_id,
                    "provider_id": key.provider_id,
                    "provider_user_id": key.provider_user_id,
                },
            )
        logger.info("Removed %s connection for user %s", key, self._user_id)

    # ── Internal helpers ───────────────────────────────────────────────

    def _select(self, clause: str, params: Dict[str, Any], expanding=()) -> List[Connection]:
        stmt = text(f"{self._queries.account_connections_query} {clause}")
        if expanding:
            stmt = stmt.bindparams(*expanding)
        with self._session_factory() as session:
            rows = session.execute(stmt, params).all()
        return [self._map_row(row) for row in rows]

    def _map_row(self, row) -> Connection:
        data = ConnectionData(
            provider_id=row.provider_id,
            provider_user_id=row.provider_user_id,
            display_name=row.display_name,
            profile_url=row.profile_url,
            image_url=row.image_url,
            access_token=self._encryptor.decrypt(row.access_token),
            secret=decrypt_if_present(self._encryptor, row.secret),
            refresh_token=decrypt_if_present(self._encryptor, row.refresh_token),
            expire_time=row.expire_time or None,
        )
        return self._registry.get_connection_factory(data.provider_id).create_connection(data)

    def _row_params(self, data: ConnectionData) -> Dict[str, Any]:
        return {
            "user_id": self._user_id,
            "provider_id": data.provider_id,
            "provider_user_id": data.provider_user_id,
            "display_name": data.display_name,
            "profile_url": data.profile_url,
            "image_url": data.image_url,
            "access_token": self._encryptor.encrypt(data.access_token),
            "secret": encrypt_if_present(self._encryptor, data.secret),
            "refresh_token": encrypt_if_present(self._encryptor, data.refresh_token),
            "expire_time": data.expire_time,
        }


def build_users_connection_repository(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[ConnectionFactoryRegistry] = None,
    connection_sign_up: Optional[ConnectionSignUp] = None,
) -> SqlUsersConnectionRepository:
    """
    Wire a SQL users repository from settings.

    Builds the engine for ``DATABASE_URL``, creates the table if missing,
    and picks the encryptor from ``TOKEN_ENCRYPTION_KEY``.  Without an
    explicit registry every configured bundled provider is registered.
    """
    settings = settings or config
    engine = build_engine(settings.database_url)
    init_db(engine)
    return SqlUsersConnectionRepository(
        build_session_factory(engine),
        registry or build_default_registry(settings),
        encryptor_from_settings(settings),
        connection_sign_up=connection_sign_up,
    )
