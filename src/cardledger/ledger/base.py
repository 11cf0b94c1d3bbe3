"""Contracts of the ledger store and the legacy mirror."""

from abc import ABC, abstractmethod
from typing import Sequence

from cardledger.domain.entities import LedgerEntry, LegacyResult


class LedgerStore(ABC):
    """Primary household ledger."""

    @abstractmethod
    def append_entry(self, entry: LedgerEntry) -> None:
        """Append one entry."""
        pass

    @abstractmethod
    def append_entries(self, entries: Sequence[LedgerEntry]) -> None:
        """Append several entries."""
        pass

    @abstractmethod
    def update_entry_by_id(self, entry_id: str, entry: LedgerEntry) -> None:
        """Replace the entry with the given id.

        Raises:
            RowNotFoundError: If no entry has that id
        """
        pass

    @abstractmethod
    def delete_entry_by_id(self, entry_id: str) -> None:
        """Delete the entry with the given id.

        Raises:
            RowNotFoundError: If no entry has that id
        """
        pass

    @abstractmethod
    def read_all_entries(self) -> list[LedgerEntry]:
        """Read every entry."""
        pass


class LegacyMirror(ABC):
    """Secondary store kept in sync with the ledger for the older system.

    Implementations report failures through LegacyResult(status="error") but
    may also raise; callers treat both as a non-fatal mirror failure.
    """

    @abstractmethod
    def append_mirrored(self, entry: LedgerEntry) -> LegacyResult:
        """Append a mirrored copy of an entry."""
        pass

    @abstractmethod
    def remove_mirrored(self, entry: LedgerEntry) -> LegacyResult:
        """Remove the mirrored copy of an entry."""
        pass
