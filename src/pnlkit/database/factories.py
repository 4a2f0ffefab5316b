"""Database factory functions for creating database instances."""

from typing import Optional

from pnlkit.config import Settings, default_database_path
from pnlkit.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, uses the path
            from Settings (PNLKIT_DB_PATH), then defaults to ~/.pnlkit/pnlkit.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = Settings.from_env().database_path or str(default_database_path())

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url)


def create_database(database_url: str) -> SQLAlchemyDatabase:
    """Create a database instance from any SQLAlchemy URL."""
    return SQLAlchemyDatabase(database_url)
