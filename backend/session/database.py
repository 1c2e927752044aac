"""
Database initialization module for the Keeper League Sync store.
"""

from sqlmodel import create_engine, SQLModel
from sqlalchemy.pool import StaticPool
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# Global variables
_engine: Optional[object] = None
_repository: Optional[object] = None


def init_database(database_url: str, echo: bool = False):
    """
    Initialize the database connection and create tables.

    Args:
        database_url: SQLAlchemy connection string
        echo: Enable SQL query logging

    Returns:
        SQLModel engine instance
    """
    global _engine, _repository

    try:
        logger.info(f"Initializing database connection to: {database_url[:50]}...")

        engine_kwargs = {"echo": echo}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url == "sqlite://":
                engine_kwargs["poolclass"] = StaticPool

        _engine = create_engine(database_url, **engine_kwargs)
        _repository = None

        # Importing the models registers every table on the metadata
        from backend.session import models  # noqa: F401

        SQLModel.metadata.create_all(_engine)

        logger.info("Database initialization successful")
        return _engine

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def get_engine():
    """
    Get the database engine.

    Returns:
        SQLModel engine instance

    Raises:
        RuntimeError: If database is not initialized
    """
    global _engine

    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    return _engine


def get_repository():
    """
    Get the repository instance (singleton).

    Returns:
        KeeperLeagueRepository instance

    Raises:
        RuntimeError: If database is not initialized
    """
    global _repository, _engine

    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    if _repository is None:
        from .repository import KeeperLeagueRepository
        _repository = KeeperLeagueRepository(_engine)

    return _repository
