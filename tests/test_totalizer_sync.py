"""Tests for diffing and applying totalizer entries."""

import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal

from cardledger.domain.entities import LedgerEntry, LegacyResult
from cardledger.domain.totalizer_sync import (
    TotalizerSync,
    plan_sync,
    select_tagged_entries,
    with_legacy_status_tag,
    with_totalizer_tag,
)
from cardledger.ledger.base import LedgerStore

from conftest import FakeLegacyMirror

TAG = "[CARTAO_TOTALIZADOR:C6:2026-02]"
T0 = datetime(2026, 3, 1, 9, 0, 0)


def entry(description, amount, note=TAG, at=T0, **kwargs):
    fields = dict(
        id=str(uuid.uuid4()),
        date=date(2026, 2, 28),
        type="despesa",
        description=description,
        category="CARTAO_CREDITO",
        amount=Decimal(amount),
        attribution=description.split("_", 1)[1],
        method="cartao",
        installment_total=None,
        installment_number=None,
        note=note,
        created_at=at,
        updated_at=at,
        payer="WALKER",
    )
    fields.update(kwargs)
    return LedgerEntry(**fields)


def tagged(ledger_store):
    return select_tagged_entries(ledger_store.read_all_entries(), "C6", "2026-02")


class VanishingLedger(LedgerStore):
    """Ledger whose entries with the given descriptions disappear right after being appended."""

    def __init__(self, inner, vanishing):
        self.inner = inner
        self.vanishing = set(vanishing)

    def append_entry(self, entry):
        self.inner.append_entry(entry)
        if entry.description in self.vanishing:
            self.inner.delete_entry_by_id(entry.id)

    def append_entries(self, entries):
        for row in entries:
            self.append_entry(row)

    def update_entry_by_id(self, entry_id, entry):
        self.inner.update_entry_by_id(entry_id, entry)

    def delete_entry_by_id(self, entry_id):
        self.inner.delete_entry_by_id(entry_id)

    def read_all_entries(self):
        return self.inner.read_all_entries()


class TestNotes:
    def test_with_totalizer_tag_keeps_one_copy(self):
        assert with_totalizer_tag("", TAG) == TAG
        assert with_totalizer_tag(f"manual {TAG} {TAG}", TAG) == f"manual {TAG}"

    def test_with_legacy_status_tag_replaces_previous_status(self):
        note = f"{TAG} [LEGADO:ERROR] (quota exceeded)"
        result = with_legacy_status_tag(note, LegacyResult(status="success", range="A2:G2"))
        assert result == f"{TAG} [LEGADO:SUCCESS] (range A2:G2)"

    def test_with_legacy_status_tag_message_and_range(self):
        result = with_legacy_status_tag("", LegacyResult(status="skipped", message="Legacy mirror disabled"))
        assert result == "[LEGADO:SKIPPED] (Legacy mirror disabled)"

    def test_with_legacy_status_tag_message_with_parentheses(self):
        failed = with_legacy_status_tag(TAG, LegacyResult(status="error", message="timeout (30s)"))
        assert failed == f"{TAG} [LEGADO:ERROR] (timeout (30s))"

        failed_again = with_legacy_status_tag(failed, LegacyResult(status="error", message="refused (errno 111)"))
        assert failed_again == f"{TAG} [LEGADO:ERROR] (refused (errno 111))"

        recovered = with_legacy_status_tag(failed_again, LegacyResult(status="success", range="A2:G2"))
        assert recovered == f"{TAG} [LEGADO:SUCCESS] (range A2:G2)"

    def test_with_totalizer_tag_keeps_legacy_status_last(self):
        note = "conferido [LEGADO:ERROR] (timeout (30s))"
        assert with_totalizer_tag(note, TAG) == f"conferido {TAG} [LEGADO:ERROR] (timeout (30s))"
        assert with_totalizer_tag(f"{TAG} [LEGADO:SUCCESS] (range A2:G2)", TAG) == (
            f"{TAG} [LEGADO:SUCCESS] (range A2:G2)"
        )


class TestPlan:
    def test_plan_sync_classifies_rows(self):
        unchanged = entry("C6_WALKER", "100.00")
        changed = entry("C6_AMBOS", "120.00")
        orphan = entry("C6_DEA", "30.00")
        planned = [entry("C6_WALKER", "100.00"), entry("C6_AMBOS", "150.00")]
        now = T0 + timedelta(days=1)

        plan = plan_sync(planned, [unchanged, changed, orphan], TAG, now=now)

        assert plan.creates == []
        assert plan.unchanged == [unchanged]
        assert plan.deletes == [orphan]
        current, next_row = plan.updates[0]
        assert current == changed
        assert next_row.id == changed.id
        assert next_row.amount == Decimal("150.00")
        assert next_row.created_at == changed.created_at
        assert next_row.updated_at == now

    def test_plan_sync_deletes_older_duplicates(self):
        older = entry("C6_WALKER", "100.00", at=T0)
        newer = entry("C6_WALKER", "100.00", at=T0 + timedelta(hours=1))

        plan = plan_sync([entry("C6_WALKER", "100.00")], [older, newer], TAG)

        assert plan.unchanged == [newer]
        assert plan.deletes == [older]

    def test_select_tagged_entries_ignores_foreign_rows(self):
        rows = [
            entry("C6_WALKER", "1"),
            entry("C6_WALKER", "1", note="[CARTAO_TOTALIZADOR:C6:2026-03]"),
            entry("C6_WALKER", "1", note=""),
            entry("BB_WALKER", "1", note="[CARTAO_TOTALIZADOR:BB:2026-02]"),
            entry("C6_OUTRO", "1"),
        ]
        assert select_tagged_entries(rows, "C6", "2026-02") == [rows[0]]


class TestApply:
    def test_creates_entries_and_mirrors_them(self, ledger_store, legacy_mirror):
        sync = TotalizerSync(ledger_store, legacy_mirror)
        planned = [entry("C6_WALKER", "100.00"), entry("C6_AMBOS", "50.00")]

        result = sync.apply(planned, [], TAG)

        assert (result.created, result.updated, result.deleted, result.unchanged) == (2, 0, 0, 0)
        assert [o.status for o in result.legacy_results] == ["success", "success"]
        assert legacy_mirror.calls == [
            ("append", "C6_WALKER", Decimal("100.00")),
            ("append", "C6_AMBOS", Decimal("50.00")),
        ]
        rows = {row.description: row for row in tagged(ledger_store)}
        assert rows["C6_WALKER"].note == f"{TAG} [LEGADO:SUCCESS] (range A2:G2)"
        assert rows["C6_AMBOS"].note == f"{TAG} [LEGADO:SUCCESS] (range A3:G3)"

    def test_update_in_place(self, ledger_store, legacy_mirror):
        sync = TotalizerSync(ledger_store, legacy_mirror)
        sync.apply([entry("C6_WALKER", "120.00")], [], TAG)
        original = tagged(ledger_store)[0]
        legacy_mirror.calls.clear()

        result = sync.apply([entry("C6_WALKER", "150.00")], tagged(ledger_store), TAG)

        assert (result.created, result.updated, result.deleted, result.unchanged) == (0, 1, 0, 0)
        assert legacy_mirror.calls == [
            ("remove", "C6_WALKER", Decimal("120.00")),
            ("append", "C6_WALKER", Decimal("150.00")),
        ]
        rows = tagged(ledger_store)
        assert len(rows) == 1
        assert rows[0].id == original.id
        assert rows[0].created_at == original.created_at
        assert rows[0].amount == Decimal("150.00")
        assert rows[0].note.startswith(TAG)
        assert rows[0].note.count("[LEGADO:") == 1

    def test_second_identical_run_changes_nothing(self, ledger_store, legacy_mirror):
        sync = TotalizerSync(ledger_store, legacy_mirror)
        planned = [entry("C6_WALKER", "100.00"), entry("C6_DEA", "30.00")]
        sync.apply(planned, [], TAG)
        before = tagged(ledger_store)
        legacy_mirror.calls.clear()

        result = sync.apply([entry("C6_WALKER", "100.00"), entry("C6_DEA", "30.00")], before, TAG)

        assert (result.created, result.updated, result.deleted, result.unchanged) == (0, 0, 0, 2)
        assert legacy_mirror.calls == []
        assert tagged(ledger_store) == before

    def test_duplicates_and_orphans_are_deleted(self, ledger_store, legacy_mirror):
        primary = entry("C6_WALKER", "100.00", at=T0 + timedelta(hours=1))
        duplicate = entry("C6_WALKER", "100.00", at=T0)
        orphan = entry("C6_DEA", "30.00")
        unrelated = entry("C6_DEA", "30.00", note="gasto comum")
        ledger_store.append_entries([primary, duplicate, orphan, unrelated])
        sync = TotalizerSync(ledger_store, legacy_mirror)

        result = sync.apply([entry("C6_WALKER", "100.00")], tagged(ledger_store), TAG)

        assert (result.created, result.updated, result.deleted, result.unchanged) == (0, 0, 2, 1)
        remaining = {row.id for row in ledger_store.read_all_entries()}
        assert remaining == {primary.id, unrelated.id}
        assert [o.action for o in result.legacy_results] == ["delete", "delete"]

    def test_dry_run_only_counts(self, ledger_store, legacy_mirror):
        ledger_store.append_entry(entry("C6_DEA", "30.00"))
        sync = TotalizerSync(ledger_store, legacy_mirror)
        before = ledger_store.read_all_entries()

        result = sync.apply([entry("C6_WALKER", "100.00")], tagged(ledger_store), TAG, dry_run=True)

        assert result.dry_run is True
        assert (result.created, result.updated, result.deleted, result.unchanged) == (1, 0, 1, 0)
        assert result.legacy_results == []
        assert ledger_store.read_all_entries() == before
        assert legacy_mirror.calls == []

    def test_legacy_error_is_recorded_not_raised(self, ledger_store):
        sync = TotalizerSync(ledger_store, FakeLegacyMirror(mode="error"))

        result = sync.apply([entry("C6_WALKER", "100.00")], [], TAG)

        assert result.created == 1
        assert result.legacy_results[0].status == "error"
        assert result.legacy_results[0].message == "quota exceeded"
        assert tagged(ledger_store)[0].note == f"{TAG} [LEGADO:ERROR] (quota exceeded)"

    def test_legacy_exception_is_recorded_not_raised(self, ledger_store):
        sync = TotalizerSync(ledger_store, FakeLegacyMirror(mode="raise"))
        ledger_store.append_entry(entry("C6_DEA", "30.00"))

        result = sync.apply([entry("C6_WALKER", "100.00")], tagged(ledger_store), TAG)

        assert (result.created, result.deleted) == (1, 1)
        assert [o.status for o in result.legacy_results] == ["error", "error"]
        assert "legacy mirror unreachable" in result.legacy_results[0].message
        assert [row.description for row in tagged(ledger_store)] == ["C6_WALKER"]

    def test_update_failure_of_legacy_removal_skips_append(self, ledger_store):
        mirror = FakeLegacyMirror()
        sync = TotalizerSync(ledger_store, mirror)
        sync.apply([entry("C6_WALKER", "120.00")], [], TAG)
        mirror.mode = "error"
        mirror.calls.clear()

        result = sync.apply([entry("C6_WALKER", "150.00")], tagged(ledger_store), TAG)

        assert result.updated == 1
        assert mirror.calls == [("remove", "C6_WALKER", Decimal("120.00"))]
        row = tagged(ledger_store)[0]
        assert row.amount == Decimal("150.00")
        assert "[LEGADO:ERROR] (quota exceeded)" in row.note

    def test_missing_row_does_not_stop_the_batch(self, ledger_store, legacy_mirror):
        ghost = entry("C6_AMBOS", "10.00")
        sync = TotalizerSync(ledger_store, legacy_mirror)

        result = sync.apply(
            [entry("C6_WALKER", "100.00"), entry("C6_AMBOS", "20.00")], [ghost], TAG
        )

        assert result.created == 1
        assert result.updated == 0
        assert len(result.errors) == 1
        assert ghost.id in result.errors[0]
        assert [row.description for row in tagged(ledger_store)] == ["C6_WALKER"]

    def test_clock_stamps_updates(self, ledger_store, legacy_mirror):
        stamp = datetime(2026, 3, 5, 8, 30, 0)
        sync = TotalizerSync(ledger_store, legacy_mirror, clock=lambda: stamp)

        sync.apply([entry("C6_WALKER", "100.00")], [], TAG)

        assert tagged(ledger_store)[0].updated_at == stamp

    def test_row_vanishing_after_create_does_not_stop_the_batch(self, ledger_store, legacy_mirror):
        sync = TotalizerSync(VanishingLedger(ledger_store, {"C6_DEA"}), legacy_mirror)
        dea = entry("C6_DEA", "30.00")

        result = sync.apply([entry("C6_WALKER", "100.00"), dea], [], TAG)

        assert result.created == 1
        assert len(result.errors) == 1
        assert dea.id in result.errors[0]
        assert [o.description for o in result.legacy_results] == ["C6_WALKER"]
        assert [row.description for row in tagged(ledger_store)] == ["C6_WALKER"]
