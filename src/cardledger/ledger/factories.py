"""Factory functions for the ledger collaborators."""

import os
from typing import Optional

from cardledger.database.factories import resolve_database_path
from cardledger.ledger.base import LegacyMirror
from cardledger.ledger.legacy import CSVLegacyMirror, DisabledLegacyMirror
from cardledger.ledger.sqlalchemy_store import SQLAlchemyLedgerStore

LEGACY_PATH_ENV = "CARDLEDGER_LEGACY_PATH"


def create_ledger_store(database_path: Optional[str] = None) -> SQLAlchemyLedgerStore:
    """Create the ledger store in the same SQLite file as the card store."""
    return SQLAlchemyLedgerStore(f"sqlite:///{resolve_database_path(database_path)}")


def create_legacy_mirror(legacy_path: Optional[str] = None) -> LegacyMirror:
    """Create the legacy mirror.

    Args:
        legacy_path: CSV file of the mirror. If None, checks CARDLEDGER_LEGACY_PATH;
            without either the mirror is disabled and reports 'skipped'.
    """
    if legacy_path is None:
        legacy_path = os.environ.get(LEGACY_PATH_ENV)
    if not legacy_path:
        return DisabledLegacyMirror()
    return CSVLegacyMirror(legacy_path)
