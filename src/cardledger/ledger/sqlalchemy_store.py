"""Ledger store backed by the ledger_entries table."""

import logging
from typing import Optional, Sequence
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cardledger.database.mappers import apply_ledger_entry, ledger_entry_to_domain
from cardledger.database.models import LedgerEntry, create_session_factory
from cardledger.domain.entities import ENTRY_TYPES, PAYMENT_METHODS, LedgerEntry as DomainLedgerEntry
from cardledger.domain.errors import RowNotFoundError, StoreError, ValidationError, invalid_choice
from cardledger.ledger.base import LedgerStore

logger = logging.getLogger(__name__)


def _check_entry(entry: DomainLedgerEntry) -> None:
    if entry.type not in ENTRY_TYPES:
        raise ValidationError(invalid_choice("entry type", entry.type, ENTRY_TYPES))
    if entry.method not in PAYMENT_METHODS:
        raise ValidationError(invalid_choice("payment method", entry.method, PAYMENT_METHODS))


class SQLAlchemyLedgerStore(LedgerStore):
    """Ledger store living in the same SQL database as the card tables."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.session_factory = create_session_factory(database_url)
        self._session: Optional[Session] = None

    def _get_session(self) -> Session:
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    def _commit(self, session: Session, operation: str, entry_id: Optional[str]) -> None:
        try:
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Ledger %s of entry %s failed: %s", operation, entry_id or "", exc)
            raise StoreError("ledger entry", operation, entry_id, exc) from exc

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def append_entry(self, entry: DomainLedgerEntry) -> None:
        self.append_entries([entry])

    def append_entries(self, entries: Sequence[DomainLedgerEntry]) -> None:
        if not entries:
            return
        for entry in entries:
            _check_entry(entry)
        session = self._get_session()
        for entry in entries:
            row = LedgerEntry(id=entry.id)
            apply_ledger_entry(row, entry)
            session.add(row)
        self._commit(session, "append", entries[0].id if len(entries) == 1 else None)

    def update_entry_by_id(self, entry_id: str, entry: DomainLedgerEntry) -> None:
        _check_entry(entry)
        session = self._get_session()
        row = session.get(LedgerEntry, entry_id)
        if row is None:
            session.rollback()
            raise RowNotFoundError("ledger entry", entry_id)
        apply_ledger_entry(row, entry)
        self._commit(session, "update", entry_id)

    def delete_entry_by_id(self, entry_id: str) -> None:
        session = self._get_session()
        row = session.get(LedgerEntry, entry_id)
        if row is None:
            session.rollback()
            raise RowNotFoundError("ledger entry", entry_id)
        session.delete(row)
        self._commit(session, "delete", entry_id)

    def read_all_entries(self) -> list[DomainLedgerEntry]:
        session = self._get_session()
        try:
            rows = (
                session.query(LedgerEntry)
                .order_by(LedgerEntry.date, LedgerEntry.created_at, LedgerEntry.id)
                .all()
            )
            return [ledger_entry_to_domain(row) for row in rows]
        finally:
            session.rollback()
