"""External ledger collaborators: the primary ledger store and the legacy mirror."""

from cardledger.ledger.base import LedgerStore, LegacyMirror
from cardledger.ledger.factories import create_ledger_store, create_legacy_mirror

__all__ = ["LedgerStore", "LegacyMirror", "create_ledger_store", "create_legacy_mirror"]
