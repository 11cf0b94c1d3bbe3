"""Totalizer domain service: totals, generation and closed-month refresh."""

import logging
import os
from typing import Iterable, Optional

from cardledger.database.base import Database
from cardledger.domain.entities import (
    BANKS,
    PAYERS,
    TOTALIZER_BUCKETS,
    CardTotals,
    Movement,
    TotalizerRunResult,
)
from cardledger.domain.errors import ValidationError, invalid_choice
from cardledger.domain.totalizer import (
    compute_totals,
    ensure_ready_for_generation,
    synthesize,
    totalizer_tag,
)
from cardledger.domain.totalizer_sync import (
    TotalizerSync,
    select_tagged_entries,
    sort_most_recent,
)
from cardledger.ledger.base import LedgerStore, LegacyMirror
from cardledger.utils.date_parser import parse_month

logger = logging.getLogger(__name__)

AMBOS_I_BUCKET_ENV = "CARDLEDGER_AMBOS_I_BUCKET"
DEFAULT_CATEGORY = "CARTAO_CREDITO"
DEFAULT_PAYER = "WALKER"


def resolve_ambos_i_bucket(value: Optional[str] = None) -> Optional[str]:
    """Bucket AMBOS_I allocations fold into, from the argument or CARDLEDGER_AMBOS_I_BUCKET.

    Returns None when neither is set.

    Raises:
        ValidationError: If the value is not a totalizer bucket
    """
    if value is None:
        value = os.environ.get(AMBOS_I_BUCKET_ENV)
    if not value:
        return None
    value = value.strip().upper()
    if value not in TOTALIZER_BUCKETS:
        raise ValidationError(invalid_choice("AMBOS_I bucket", value, TOTALIZER_BUCKETS))
    return value


def movement_target(movement: Optional[Movement]) -> Optional[tuple[str, str]]:
    """The (bank, month) whose totalizers a movement contributes to."""
    if movement is None or movement.card is None:
        return None
    return movement.card.bank, movement.month_ref


class TotalizerService:
    """Service for computing card totals and writing them to the ledger."""

    def __init__(
        self,
        db: Database,
        ledger: LedgerStore,
        legacy: LegacyMirror,
        ambos_i_bucket: Optional[str] = None,
    ):
        """Initialize totalizer service.

        Args:
            db: Card store
            ledger: Primary ledger store
            legacy: Legacy mirror
            ambos_i_bucket: Bucket AMBOS_I allocations fold into (None: not folded)
        """
        self.db = db
        self.ledger = ledger
        self.sync = TotalizerSync(ledger, legacy)
        self.ambos_i_bucket = resolve_ambos_i_bucket(ambos_i_bucket)

    def _validate_target(self, bank: str, month: str) -> str:
        if bank not in BANKS:
            raise ValidationError(invalid_choice("bank", bank, BANKS))
        try:
            return parse_month(month)
        except ValueError as e:
            raise ValidationError(str(e))

    def get_totals(self, month: str, bank: str, card_id: Optional[str] = None) -> CardTotals:
        """Compute the totals of a bank for a billing month."""
        month = self._validate_target(bank, month)
        movements = self.db.list_movements()
        return compute_totals(movements, month, bank, card_id=card_id, ambos_i_bucket=self.ambos_i_bucket)

    def generate(
        self,
        month: str,
        bank: str,
        payer: str,
        category: str = DEFAULT_CATEGORY,
        dry_run: bool = False,
    ) -> TotalizerRunResult:
        """Write (or preview) the totalizer entries of a bank for a month.

        Raises:
            PendingClassificationError: If movements of the month are pending
            ValidationError: If input is invalid or AMBOS_I has no bucket
        """
        if payer not in PAYERS:
            raise ValidationError(invalid_choice("payer", payer, PAYERS))
        totals = self.get_totals(month, bank)
        ensure_ready_for_generation(totals)

        planned = synthesize(totals, payer=payer, category=category)
        existing = select_tagged_entries(self.ledger.read_all_entries(), bank, totals.month)
        result = self.sync.apply(planned, existing, totalizer_tag(bank, totals.month), dry_run=dry_run)
        logger.info(
            "Totalizers %s %s: %d created, %d updated, %d deleted, %d unchanged%s",
            bank,
            totals.month,
            result.created,
            result.updated,
            result.deleted,
            result.unchanged,
            " (dry run)" if dry_run else "",
        )
        return TotalizerRunResult(
            month=totals.month, bank=bank, totals=totals, planned=planned, sync=result
        )

    def refresh_closed_months(
        self, targets: Iterable[Optional[tuple[str, str]]]
    ) -> list[TotalizerRunResult]:
        """Re-sync totalizers of months that already have totalizer entries.

        Used after a movement changes or is deleted. Months without totalizer
        entries are left alone; months with pending movements are skipped.
        Category and payer come from the most recent existing entry.
        """
        unique_targets = list(dict.fromkeys(target for target in targets if target is not None))
        if not unique_targets:
            return []

        movements = self.db.list_movements()
        results = []
        for bank, month in unique_targets:
            existing = select_tagged_entries(self.ledger.read_all_entries(), bank, month)
            if not existing:
                continue

            totals = compute_totals(movements, month, bank, ambos_i_bucket=self.ambos_i_bucket)
            if totals.pending > 0:
                logger.warning(
                    "Skipping totalizer refresh of %s %s: %d movement(s) pending classification",
                    bank,
                    month,
                    totals.pending,
                )
                continue
            if totals.unbucketed:
                logger.warning(
                    "Skipping totalizer refresh of %s %s: AMBOS_I allocations have no bucket", bank, month
                )
                continue

            template = sort_most_recent(existing)[0]
            planned = synthesize(
                totals,
                payer=template.payer or DEFAULT_PAYER,
                category=template.category or DEFAULT_CATEGORY,
            )
            sync = self.sync.apply(planned, existing, totalizer_tag(bank, month))
            results.append(
                TotalizerRunResult(month=month, bank=bank, totals=totals, planned=planned, sync=sync)
            )
        return results
