"""Database module."""

import logging
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger("database")


class Base(DeclarativeBase):
    pass


@lru_cache()
def get_engine(database_url: str) -> Engine:
    """
    Return the process-wide engine for a database URL.

    In-memory SQLite databases share a single connection so every session sees
    the same tables.
    """
    logger.info("Creating engine for %s", database_url.split("@")[-1])
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


@lru_cache()
def get_session_factory(database_url: str) -> sessionmaker:
    """Return the process-wide session factory for a database URL."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


def init_db(database_url: str) -> None:
    """Create the tables that do not exist yet."""
    # Register the models on Base.metadata
    from square_bridge.core import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine(database_url))
