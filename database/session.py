"""
SQLAlchemy engine and session factory for the connection store.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from database.models import Base


def build_engine(database_url: str, **kwargs) -> Engine:
    """Create an engine; pool sizing only applies to server databases."""
    if not database_url.startswith("sqlite"):
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 20)
        kwargs.setdefault("pool_recycle", 3600)
    return create_engine(database_url, echo=False, **kwargs)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, class_=Session, expire_on_commit=False)


def init_db(bind: Engine) -> None:
    """Create the ``user_connections`` table if it does not exist."""
    Base.metadata.create_all(bind=bind)
