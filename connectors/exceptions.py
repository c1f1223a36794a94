"""
Exception hierarchy for the connectors package.

Repository, registry and OAuth failures are translated into these types so
callers can tell data-driven conditions (no such connection, duplicate) from
contract violations (unsupported operation) and provider rejections.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from connectors.data import ConnectionKey


class SocialError(Exception):
    """Base class for every error raised by this package."""


class UnknownProviderError(SocialError):
    """No connection factory is registered for a provider id or API type."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"No connection factory for '{provider}' is registered")
        self.provider = provider


# ── Repository ─────────────────────────────────────────────────────────


class ConnectionRepositoryError(SocialError):
    pass


class NoSuchConnectionError(ConnectionRepositoryError):
    def __init__(self, key: "ConnectionKey") -> None:
        super().__init__(f"No connection to {key.provider_id} user '{key.provider_user_id}' exists")
        self.key = key


class NotConnectedError(ConnectionRepositoryError):
    """The user has no connection at all to the provider."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Not connected to provider '{provider_id}'")
        self.provider_id = provider_id


class DuplicateConnectionError(ConnectionRepositoryError):
    def __init__(self, key: "ConnectionKey") -> None:
        super().__init__(
            f"A connection to {key.provider_id} user '{key.provider_user_id}' already exists"
        )
        self.key = key


# ── Contract violations ────────────────────────────────────────────────


class UnsupportedOperationError(SocialError):
    """The operation is meaningless for this protocol variant."""


class RefreshNotSupportedError(UnsupportedOperationError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(
            f"Connection to '{provider_id}' was granted without a refresh token; refresh not supported"
        )
        self.provider_id = provider_id


# ── Provider side ──────────────────────────────────────────────────────


class ProviderAuthorizationError(SocialError):
    """The provider rejected a handshake step or a refresh."""

    def __init__(
        self,
        message: str,
        *,
        provider_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.provider_id = provider_id
        self.status_code = status_code


class ProviderCommunicationError(SocialError):
    """The provider could not be reached or answered with an unexpected status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TokenDecryptionError(SocialError):
    pass
