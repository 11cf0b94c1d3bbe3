"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from cardledger.database.sqlalchemy_db import SQLAlchemyDatabase

DB_PATH_ENV = "CARDLEDGER_DB_PATH"


def resolve_database_path(database_path: Optional[str] = None) -> str:
    """Resolve the SQLite file path.

    Args:
        database_path: Explicit path. If None, checks CARDLEDGER_DB_PATH
            environment variable, then defaults to ~/.cardledger/cardledger.db
    """
    if database_path is None:
        database_path = os.environ.get(DB_PATH_ENV)

    if database_path is None:
        db_dir = Path.home() / ".cardledger"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "cardledger.db")

    return database_path


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite card store.

    Args:
        database_path: Path to SQLite database file; see resolve_database_path

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    database_path = resolve_database_path(database_path)
    db = SQLAlchemyDatabase(f"sqlite:///{database_path}")
    db.database_path = database_path
    return db
