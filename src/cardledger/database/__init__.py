"""Database layer for cardledger application."""

from cardledger.database.base import Database
from cardledger.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
