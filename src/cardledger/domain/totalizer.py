"""Monthly card totalizers: per-attribution totals and their ledger entries."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from cardledger.domain.entities import (
    CardTotals,
    ENTRY_EXPENSE,
    LedgerEntry,
    Movement,
    METHOD_CARD,
    STATUS_RECONCILED,
    TOTALIZER_BUCKETS,
)
from cardledger.domain.errors import PendingClassificationError, ValidationError, invalid_choice
from cardledger.domain.fingerprint import purchase_key
from cardledger.utils.amount_parser import to_money
from cardledger.utils.date_parser import MONTH_PATTERN, month_diff, month_last_day, utc_now
from cardledger.utils.text import normalize_for_match

ZERO = Decimal("0")
NEGLIGIBLE = Decimal("0.009")
TOTALIZER_TAG_PREFIX = "CARTAO_TOTALIZADOR"
FOLDABLE_ATTRIBUTION = "AMBOS_I"


def totalizer_tag(bank: str, month: str) -> str:
    """Note marker identifying the totalizer entries of a (bank, month)."""
    return f"[{TOTALIZER_TAG_PREFIX}:{bank}:{month}]"


def totalizer_description(bank: str, bucket: str) -> str:
    return f"{bank}_{bucket}"


def managed_descriptions(bank: str) -> set[str]:
    """Descriptions a totalizer run of this bank may write."""
    return {totalizer_description(bank, bucket) for bucket in TOTALIZER_BUCKETS}


def _installment_group_key(movement: Movement) -> str:
    tx_key = (movement.tx_key or "").strip()
    key = purchase_key(tx_key)
    if tx_key and key != tx_key:
        return key
    return "|".join(
        [
            movement.card_id,
            movement.date.isoformat(),
            normalize_for_match(movement.description),
            f"{to_money(movement.amount):.2f}",
            str(movement.installment_total or ""),
        ]
    )


def _is_later_installment(current: Movement, known: Movement) -> bool:
    current_number = current.installment_number or 1
    known_number = known.installment_number or 1
    if current_number != known_number:
        return current_number > known_number
    if current.month_ref != known.month_ref:
        return current.month_ref > known.month_ref
    return current.updated_at > known.updated_at


def _month_not_after(left: str, right: str) -> bool:
    return bool(MONTH_PATTERN.match(left or "")) and bool(MONTH_PATTERN.match(right)) and left <= right


def compute_totals(
    movements: Sequence[Movement],
    month: str,
    bank: str,
    card_id: Optional[str] = None,
    ambos_i_bucket: Optional[str] = None,
) -> CardTotals:
    """Sum classified allocations of a bank's movements into attribution buckets.

    Movements of the month that are not 'conciliado' are counted as pending
    and left out of the totals. Allocations tagged AMBOS_I are folded into
    ``ambos_i_bucket`` when one is given and reported as ``unbucketed``
    otherwise.

    Installment aggregates look at every installment movement of the bank up
    to the month, keeping the latest known installment of each purchase.
    """
    if ambos_i_bucket is not None and ambos_i_bucket not in TOTALIZER_BUCKETS:
        raise ValidationError(invalid_choice("AMBOS_I bucket", ambos_i_bucket, TOTALIZER_BUCKETS))

    totals = {bucket: ZERO for bucket in TOTALIZER_BUCKETS}
    unbucketed = ZERO
    pending = 0
    installments_in_month = ZERO
    latest_installment: dict[str, Movement] = {}

    for movement in movements:
        if movement.card is None or movement.card.bank != bank:
            continue
        if card_id is not None and movement.card_id != card_id:
            continue

        if movement.is_installment:
            if movement.month_ref == month:
                installments_in_month += movement.amount
            if _month_not_after(movement.month_ref, month):
                key = _installment_group_key(movement)
                known = latest_installment.get(key)
                if known is None or _is_later_installment(movement, known):
                    latest_installment[key] = movement

        if movement.month_ref != month:
            continue

        if movement.status != STATUS_RECONCILED:
            pending += 1
            continue

        for allocation in movement.allocations:
            bucket = allocation.attribution
            if bucket == FOLDABLE_ATTRIBUTION:
                if ambos_i_bucket is None:
                    unbucketed += allocation.amount
                    continue
                bucket = ambos_i_bucket
            if bucket in totals:
                totals[bucket] += allocation.amount

    open_installments = ZERO
    open_projected = ZERO
    for movement in latest_installment.values():
        total_count = movement.installment_total or 1
        current = min(max(movement.installment_number or 1, 1), total_count)
        open_installments += movement.amount * max(total_count - current, 0)

        advanced = max(month_diff(movement.month_ref, month), 0)
        projected = min(current + advanced, total_count)
        open_projected += movement.amount * max(total_count - projected, 0)

    return CardTotals(
        month=month,
        bank=bank,
        by_attribution=totals,
        pending=pending,
        unbucketed=unbucketed,
        installments_in_month=to_money(installments_in_month),
        open_installments=to_money(open_installments),
        open_installments_projected=to_money(open_projected),
    )


def ensure_ready_for_generation(totals: CardTotals) -> None:
    """Refuse totalizer generation while the month is not fully classified.

    Raises:
        PendingClassificationError: If any movement of the month is pending
        ValidationError: If AMBOS_I allocations have no configured bucket
    """
    if totals.pending > 0:
        raise PendingClassificationError(totals.pending, totals.bank, totals.month)
    if abs(totals.unbucketed) > NEGLIGIBLE:
        raise ValidationError(
            f"{totals.bank} {totals.month} has {totals.unbucketed:.2f} allocated to AMBOS_I; "
            "configure the bucket it folds into (CARDLEDGER_AMBOS_I_BUCKET) before generating totalizers"
        )


def synthesize(
    totals: CardTotals,
    payer: str,
    category: str,
    now: Optional[datetime] = None,
) -> list[LedgerEntry]:
    """Build one ledger entry per non-negligible attribution bucket.

    Entries are dated on the last day of the month, described as
    ``{bank}_{bucket}`` and tagged with the totalizer marker in their note.
    """
    now = now or utc_now()
    entry_date = month_last_day(totals.month)
    tag = totalizer_tag(totals.bank, totals.month)

    entries = []
    for bucket in TOTALIZER_BUCKETS:
        amount = totals.by_attribution.get(bucket, ZERO)
        if abs(amount) <= NEGLIGIBLE:
            continue
        entries.append(
            LedgerEntry(
                id=str(uuid.uuid4()),
                date=entry_date,
                type=ENTRY_EXPENSE,
                description=totalizer_description(totals.bank, bucket),
                category=category,
                amount=to_money(amount),
                attribution=bucket,
                method=METHOD_CARD,
                installment_total=None,
                installment_number=None,
                note=tag,
                created_at=now,
                updated_at=now,
                payer=payer,
            )
        )
    return entries
