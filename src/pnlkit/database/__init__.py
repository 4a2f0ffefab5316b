"""Database layer for pnlkit application."""

from pnlkit.database.base import Database
from pnlkit.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
