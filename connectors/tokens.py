"""
OAuth credential value types.

``OAuthToken`` carries an OAuth1 token/secret pair (or an OAuth2 bearer value
with no secret); ``AccessGrant`` is the OAuth2 token-endpoint result.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class OAuthToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    secret: Optional[str] = None


class AuthorizedRequestToken(BaseModel):
    """An OAuth1 request token the user has authorized, plus the callback verifier."""

    model_config = ConfigDict(frozen=True)

    value: str
    secret: Optional[str] = None
    verifier: Optional[str] = None

    @classmethod
    def from_request_token(cls, token: OAuthToken, verifier: Optional[str]) -> "AuthorizedRequestToken":
        return cls(value=token.value, secret=token.secret, verifier=verifier)


class AccessGrant(BaseModel):
    """
    Result of an OAuth2 code exchange or refresh.

    ``expire_time`` is an absolute epoch-milliseconds timestamp, ``None`` when
    the provider did not report an expiry.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    scope: Optional[str] = None
    refresh_token: Optional[str] = None
    expire_time: Optional[int] = None
