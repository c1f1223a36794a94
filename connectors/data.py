"""
Connection value types shared by connections, factories and repositories.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ConnectionKey(BaseModel):
    """Identifies one provider account: (provider id, provider user id)."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    provider_user_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.provider_id}:{self.provider_user_id}"


class ConnectionData(BaseModel):
    """
    Persistable snapshot of a connection.

    Token fields are plaintext here; repositories encrypt them on write.
    ``expire_time`` is epoch millis, ``None`` for non-expiring grants.
    """

    model_config = ConfigDict(frozen=True)

    provider_id: str
    provider_user_id: Optional[str] = None
    display_name: Optional[str] = None
    profile_url: Optional[str] = None
    image_url: Optional[str] = None
    access_token: str
    secret: Optional[str] = None
    refresh_token: Optional[str] = None
    expire_time: Optional[int] = None

    @property
    def key(self) -> ConnectionKey:
        return ConnectionKey(provider_id=self.provider_id, provider_user_id=self.provider_user_id)


class UserProfile(BaseModel):
    """Provider-neutral view of the connected user's profile."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None


class ConnectionValues:
    """Sink an ``ApiAdapter`` fills in from the provider's user record."""

    def __init__(self) -> None:
        self.provider_user_id: Optional[str] = None
        self.display_name: Optional[str] = None
        self.profile_url: Optional[str] = None
        self.image_url: Optional[str] = None
