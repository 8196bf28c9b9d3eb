"""
models.py

SQLAlchemy ORM models for the Lantern database.
Defines the identities table, whose unique (origin_kind, origin_key)
constraint is what keeps concurrent first contact from creating duplicates,
plus engine and session helpers.
Part of Lantern - Conversational Turn Dispatcher.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, String, Text, UniqueConstraint, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

import config

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentityRecord(Base):
    """
    A stored identity.

    origin_kind is one of "platform", "web_anonymous", "web_registered";
    origin_key is the platform user id, "anonymous", or the web user id.
    """

    __tablename__ = "identities"
    __table_args__ = (
        UniqueConstraint("origin_kind", "origin_key", name="uq_identities_origin"),
    )

    id = Column(String, primary_key=True)
    display_name = Column(String, nullable=False, default="")
    persona = Column(String, nullable=True)
    custom_prompt = Column(Text, nullable=True)

    origin_kind = Column(String, nullable=False)
    origin_key = Column(String, nullable=False)

    # platform-linked
    platform_username = Column(String, nullable=True)
    is_bot = Column(Boolean, default=False)
    avatar_url = Column(String, nullable=True)

    # web
    web_user_id = Column(String, nullable=True)
    web_username = Column(String, nullable=True, index=True)
    email = Column(String, nullable=True)
    credential_ref = Column(String, nullable=True)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


_ENGINES: dict[str, Engine] = {}


def get_engine(url: Optional[str] = None) -> Engine:
    """
    Return a cached SQLAlchemy engine for *url* (defaults to config.DATABASE_URL).

    Args:
        url: Database URL.

    Returns:
        The Engine instance.

    Example:
        engine = get_engine("sqlite:///lantern.db")
    """
    url = url or config.DATABASE_URL
    engine = _ENGINES.get(url)
    if engine is None:
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine = create_engine(url, connect_args=connect_args, future=True)
        _ENGINES[url] = engine
    return engine


def get_session_factory(url: Optional[str] = None) -> sessionmaker:
    """Return a sessionmaker bound to the engine for *url*."""
    return sessionmaker(bind=get_engine(url), expire_on_commit=False, future=True)


def create_all_tables(url: Optional[str] = None) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(get_engine(url))
