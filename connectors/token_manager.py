"""
Token manager — hand out a usable connection for a user + provider.

This is the single entry point callers use when they want the primary
connection's API client and do not want to deal with expiry themselves.
"""

from __future__ import annotations

import logging
from typing import Optional

from connectors.connection import Connection
from connectors.repository import ConnectionRepository

logger = logging.getLogger(__name__)


def get_active_connection(repository: ConnectionRepository, provider_id: str) -> Optional[Connection]:
    """
    Primary connection for ``provider_id``, refreshed if it has expired.

    1. Look up the lowest-rank connection; ``None`` if the user never connected.
    2. If it has expired and carries a refresh token, refresh it and persist
       the rotated tokens with ``update_connection``.
    3. Otherwise return it as is; an expired connection without a refresh
       token will fail at the provider, and the caller decides whether to
       send the user through authorization again.

    Refresh failures propagate.
    """
    connections = repository.find_connections(provider_id)
    if not connections:
        return None
    connection = connections[0]

    if not connection.has_expired():
        return connection

    if not connection.create_data().refresh_token:
        logger.warning(
            "%s connection %s for user %s has expired and cannot be refreshed",
            provider_id,
            connection.key,
            repository.user_id,
        )
        return connection

    connection.refresh()
    repository.update_connection(connection)
    logger.info("Refreshed %s token for user %s", provider_id, repository.user_id)
    return connection
