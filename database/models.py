"""
SQLAlchemy ORM model for the persisted provider connections.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class UserConnection(Base):
    """One row per (local user, provider account) link; token columns hold ciphertext."""

    __tablename__ = "user_connections"

    user_id = Column(String(255), primary_key=True)
    provider_id = Column(String(255), primary_key=True)
    provider_user_id = Column(String(255), primary_key=True)
    rank = Column(Integer, nullable=False)
    display_name = Column(String(255))
    profile_url = Column(String(512))
    image_url = Column(String(512))
    access_token = Column(Text, nullable=False)
    secret = Column(Text)
    refresh_token = Column(Text)
    expire_time = Column(BigInteger)

    __table_args__ = (
        Index("ix_user_connections_rank", "user_id", "provider_id", "rank"),
        Index("ix_user_connections_provider_user", "provider_id", "provider_user_id"),
    )
