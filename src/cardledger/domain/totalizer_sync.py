"""Keeping totalizer ledger entries in sync with freshly computed totals.

Entries previously written for a (bank, month) are found through the
totalizer marker in their note and keyed by description. Planned entries are
diffed against them: missing descriptions are created, changed ones updated
in place, stale ones deleted, and extra copies of a description (duplicates)
always deleted. Every ledger mutation is mirrored to the legacy store; mirror
failures are recorded in the entry note and in the result, never raised.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional, Sequence

from cardledger.domain.entities import LedgerEntry, LegacyResult, LegacySyncOutcome, SyncResult
from cardledger.domain.errors import RowNotFoundError
from cardledger.domain.totalizer import managed_descriptions, totalizer_tag
from cardledger.ledger.base import LedgerStore, LegacyMirror
from cardledger.utils.date_parser import utc_now

logger = logging.getLogger(__name__)

LEGACY_SUFFIX = re.compile(r"\s*\[LEGADO:[A-Z_]+\].*\Z", re.DOTALL)

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"


def split_legacy_status(note: str) -> tuple[str, str]:
    """Split a note into its text and its trailing legacy status suffix."""
    note = note or ""
    match = LEGACY_SUFFIX.search(note)
    if match is None:
        return note.strip(), ""
    return note[: match.start()].strip(), match.group().strip()


def with_totalizer_tag(note: str, tag: str) -> str:
    """Return the note carrying exactly one copy of the tag, other text kept.

    The tag goes before any legacy status, which stays the last thing in the note.
    """
    text, status = split_legacy_status(note)
    clean = " ".join(text.replace(tag, " ").split())
    tagged = f"{clean} {tag}" if clean else tag
    return f"{tagged} {status}" if status else tagged


def with_legacy_status_tag(note: str, legacy: LegacyResult) -> str:
    """Replace the legacy status suffix of a note with the given result.

    Everything from the first [LEGADO:...] marker to the end of the note is
    the previous status.
    """
    clean, _ = split_legacy_status(note)
    parts = [f"[LEGADO:{legacy.status.upper()}]"]
    if legacy.message:
        parts.append(f"({legacy.message})")
    if legacy.range:
        parts.append(f"(range {legacy.range})")
    suffix = " ".join(parts)
    return f"{clean} {suffix}" if clean else suffix


def sort_most_recent(rows: Sequence[LedgerEntry]) -> list[LedgerEntry]:
    """Most recently updated first, ties broken by creation time."""
    return sorted(rows, key=lambda row: (row.updated_at, row.created_at), reverse=True)


def select_tagged_entries(entries: Sequence[LedgerEntry], bank: str, month: str) -> list[LedgerEntry]:
    """Ledger entries previously written as totalizers of (bank, month)."""
    tag = totalizer_tag(bank, month)
    descriptions = managed_descriptions(bank)
    return [entry for entry in entries if tag in (entry.note or "") and entry.description in descriptions]


def entry_changed(current: LedgerEntry, planned: LedgerEntry) -> bool:
    return (
        current.date != planned.date
        or current.category != planned.category
        or current.amount != planned.amount
        or current.attribution != planned.attribution
        or current.payer != planned.payer
    )


@dataclass
class SyncPlan:
    """Mutations needed to bring tagged entries in line with planned ones."""

    creates: list[LedgerEntry] = field(default_factory=list)
    updates: list[tuple[LedgerEntry, LedgerEntry]] = field(default_factory=list)
    unchanged: list[LedgerEntry] = field(default_factory=list)
    deletes: list[LedgerEntry] = field(default_factory=list)


def plan_sync(
    planned: Sequence[LedgerEntry],
    existing: Sequence[LedgerEntry],
    tag: str,
    now: Optional[datetime] = None,
) -> SyncPlan:
    """Diff planned totalizer entries against previously written ones.

    Args:
        planned: Entries synthesized from the current totals
        existing: Entries carrying the totalizer tag of the same (bank, month)
        tag: Totalizer tag kept in updated notes
        now: Timestamp stamped on updated entries

    Returns:
        SyncPlan; updates pair the current entry with its replacement
    """
    now = now or utc_now()
    plan = SyncPlan()

    existing_by_description: dict[str, list[LedgerEntry]] = {}
    for row in existing:
        existing_by_description.setdefault(row.description, []).append(row)

    planned_descriptions = set()
    for planned_row in planned:
        planned_descriptions.add(planned_row.description)
        current_rows = sort_most_recent(existing_by_description.get(planned_row.description, []))
        if not current_rows:
            plan.creates.append(planned_row)
            continue

        primary, duplicates = current_rows[0], current_rows[1:]
        if entry_changed(primary, planned_row):
            next_row = replace(
                planned_row,
                id=primary.id,
                created_at=primary.created_at,
                updated_at=now,
                note=with_totalizer_tag(primary.note, tag),
            )
            plan.updates.append((primary, next_row))
        else:
            plan.unchanged.append(primary)
        plan.deletes.extend(duplicates)

    for description, rows in existing_by_description.items():
        if description not in planned_descriptions:
            plan.deletes.extend(rows)

    return plan


class TotalizerSync:
    """Applies a SyncPlan to the ledger store and mirrors it to the legacy store."""

    def __init__(
        self,
        ledger: LedgerStore,
        legacy: LegacyMirror,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize totalizer sync.

        Args:
            ledger: Primary ledger store
            legacy: Legacy mirror
            clock: Source of update timestamps
        """
        self.ledger = ledger
        self.legacy = legacy
        self.clock = clock

    def apply(
        self,
        planned: Sequence[LedgerEntry],
        existing: Sequence[LedgerEntry],
        tag: str,
        dry_run: bool = False,
    ) -> SyncResult:
        """Create, update and delete ledger entries so they match the plan.

        In dry-run mode only the counts are computed.

        Raises:
            StoreError: If the ledger store fails a write
        """
        plan = plan_sync(planned, existing, tag, now=self.clock())
        if dry_run:
            return SyncResult(
                created=len(plan.creates),
                updated=len(plan.updates),
                deleted=len(plan.deletes),
                unchanged=len(plan.unchanged),
                dry_run=True,
            )

        outcomes: list[LegacySyncOutcome] = []
        errors: list[str] = []
        created = updated = deleted = 0

        for entry in plan.creates:
            try:
                outcomes.append(self._create(entry))
                created += 1
            except RowNotFoundError as e:
                logger.warning(
                    "Totalizer %s vanished before its legacy status was recorded: %s", entry.description, e
                )
                errors.append(str(e))

        for current, next_row in plan.updates:
            try:
                outcomes.append(self._update(current, next_row))
                updated += 1
            except RowNotFoundError as e:
                logger.warning("Totalizer %s vanished before update: %s", current.description, e)
                errors.append(str(e))

        for row in plan.deletes:
            try:
                outcomes.append(self._delete(row))
                deleted += 1
            except RowNotFoundError as e:
                logger.warning("Totalizer %s vanished before delete: %s", row.description, e)
                errors.append(str(e))

        return SyncResult(
            created=created,
            updated=updated,
            deleted=deleted,
            unchanged=len(plan.unchanged),
            legacy_results=outcomes,
            errors=errors,
        )

    def _outcome(self, entry: LedgerEntry, action: str, legacy: LegacyResult) -> LegacySyncOutcome:
        if legacy.status == "error":
            logger.warning(
                "Legacy mirror %s of %s failed: %s", action, entry.description, legacy.message or "unknown error"
            )
        return LegacySyncOutcome(
            entry_id=entry.id,
            description=entry.description,
            action=action,
            status=legacy.status,
            message=legacy.message,
            range=legacy.range,
        )

    def _create(self, entry: LedgerEntry) -> LegacySyncOutcome:
        self.ledger.append_entry(entry)
        logger.info("Created totalizer %s = %s", entry.description, entry.amount)
        try:
            legacy = self.legacy.append_mirrored(entry)
        except Exception as e:
            legacy = LegacyResult(status="error", message=f"Failed to mirror totalizer: {e}")

        finalized = replace(
            entry, note=with_legacy_status_tag(entry.note, legacy), updated_at=self.clock()
        )
        self.ledger.update_entry_by_id(entry.id, finalized)
        return self._outcome(entry, ACTION_CREATE, legacy)

    def _update(self, current: LedgerEntry, next_row: LedgerEntry) -> LegacySyncOutcome:
        try:
            removed = self.legacy.remove_mirrored(current)
            if removed.status == "error":
                legacy = LegacyResult(
                    status="error",
                    message=removed.message or "Failed to remove previous totalizer from legacy mirror",
                )
            else:
                legacy = self.legacy.append_mirrored(next_row)
        except Exception as e:
            legacy = LegacyResult(status="error", message=f"Failed to update totalizer in legacy mirror: {e}")

        finalized = replace(
            next_row, note=with_legacy_status_tag(next_row.note, legacy), updated_at=self.clock()
        )
        self.ledger.update_entry_by_id(finalized.id, finalized)
        logger.info("Updated totalizer %s: %s -> %s", current.description, current.amount, next_row.amount)
        return self._outcome(finalized, ACTION_UPDATE, legacy)

    def _delete(self, row: LedgerEntry) -> LegacySyncOutcome:
        self.ledger.delete_entry_by_id(row.id)
        logger.info("Deleted totalizer %s (%s)", row.description, row.id)
        try:
            legacy = self.legacy.remove_mirrored(row)
        except Exception as e:
            legacy = LegacyResult(status="error", message=f"Failed to remove totalizer from legacy mirror: {e}")
        return self._outcome(row, ACTION_DELETE, legacy)
