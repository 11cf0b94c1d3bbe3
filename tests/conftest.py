"""Shared pytest fixtures for cardledger tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from cardledger.database.factories import create_sqlite_database
from cardledger.domain.card import CardService
from cardledger.domain.card_import import CardImportService
from cardledger.domain.entities import AllocationInput, LegacyResult, STATUS_RECONCILED
from cardledger.domain.movement import MovementService
from cardledger.domain.totalizer_service import TotalizerService
from cardledger.ledger.base import LegacyMirror
from cardledger.ledger.factories import create_ledger_store


class FakeLegacyMirror(LegacyMirror):
    """Legacy mirror recording calls, scripted to succeed, fail or raise."""

    def __init__(self, mode: str = "success"):
        self.mode = mode
        self.calls = []
        self.rows = []

    def _respond(self, action, entry):
        self.calls.append((action, entry.description, entry.amount))
        if self.mode == "raise":
            raise RuntimeError("legacy mirror unreachable")
        if self.mode == "error":
            return LegacyResult(status="error", message="quota exceeded")
        return None

    def append_mirrored(self, entry):
        response = self._respond("append", entry)
        if response is not None:
            return response
        self.rows.append(entry.id)
        row = len(self.rows) + 1
        return LegacyResult(status="success", range=f"A{row}:G{row}")

    def remove_mirrored(self, entry):
        response = self._respond("remove", entry)
        if response is not None:
            return response
        if entry.id in self.rows:
            self.rows.remove(entry.id)
        return LegacyResult(status="success")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep settings of the developer's shell out of the tests."""
    for name in ("CARDLEDGER_DB_PATH", "CARDLEDGER_LEGACY_PATH", "CARDLEDGER_AMBOS_I_BUCKET"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def ledger_store(temp_db):
    """Ledger store sharing the temporary database file."""
    store = create_ledger_store(temp_db.database_path)
    yield store
    store.close()


@pytest.fixture
def legacy_mirror():
    return FakeLegacyMirror()


@pytest.fixture
def card_service(temp_db):
    """Create a CardService with a temporary database."""
    return CardService(temp_db)


@pytest.fixture
def movement_service(temp_db):
    """Create a MovementService with a temporary database."""
    return MovementService(temp_db)


@pytest.fixture
def import_service(temp_db):
    """Create a CardImportService with a temporary database."""
    return CardImportService(temp_db)


@pytest.fixture
def totalizer_service(temp_db, ledger_store, legacy_mirror):
    """Create a TotalizerService with AMBOS_I left unbucketed."""
    return TotalizerService(temp_db, ledger_store, legacy_mirror)


@pytest.fixture
def sample_card(card_service):
    """Create a sample C6 card for testing."""
    return card_service.save_card(name="C6 Walker", bank="C6", holder="WALKER", card_final="1234")


@pytest.fixture
def add_classified(movement_service, sample_card):
    """Factory recording a classified movement on the sample card."""

    def _add(description, splits, day=date(2026, 2, 10), month_ref="2026-02", card=None, **kwargs):
        allocations = [AllocationInput(attribution=tag, amount=Decimal(str(value))) for tag, value in splits]
        return movement_service.save_movement(
            card_id=(card or sample_card).id,
            date=day,
            description=description,
            amount=sum((a.amount for a in allocations), Decimal("0")),
            allocations=allocations,
            status=STATUS_RECONCILED,
            month_ref=month_ref,
            **kwargs,
        )

    return _add


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
