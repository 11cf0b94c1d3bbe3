"""Matching of imported statement lines against existing card movements.

Matching runs in two passes per line. An exact pass looks for an unclaimed
movement of the same card with the same tx_key. When that fails, a loose pass
considers movements with the same date, an amount within one cent, and a
compatible description; it only accepts a match when exactly one candidate
survives. Every matched movement is claimed so no two lines share it.

Nothing here writes: the functions work over snapshots handed in by callers
and can be used for dry-run previews.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from cardledger.domain.entities import (
    Card,
    ImportLine,
    Movement,
    ReconcileItem,
    ReconcileResult,
    LINE_ALREADY_POSTED,
    LINE_NEW,
)
from cardledger.domain.fingerprint import build_tx_key
from cardledger.utils.text import normalize_card_final, normalize_for_match

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")
MIN_CONTAINED_LENGTH = 4
MIN_TOKEN_LENGTH = 3
MIN_SHARED_TOKENS = 2


def descriptions_compatible(left: str, right: str) -> bool:
    """Whether two descriptions plausibly name the same purchase.

    Compatible when the normalized forms are equal, one contains the other
    (the contained one having at least 4 characters), or they share at least
    two tokens of 3+ characters. Tokens are compared as sets, so a token
    repeated in one description counts once.
    """
    a = normalize_for_match(left)
    b = normalize_for_match(right)
    if not a or not b:
        return False
    if a == b:
        return True
    if len(a) >= MIN_CONTAINED_LENGTH and a in b:
        return True
    if len(b) >= MIN_CONTAINED_LENGTH and b in a:
        return True

    tokens_a = {token for token in a.split(" ") if len(token) >= MIN_TOKEN_LENGTH}
    tokens_b = {token for token in b.split(" ") if len(token) >= MIN_TOKEN_LENGTH}
    return len(tokens_a & tokens_b) >= MIN_SHARED_TOKENS


def find_loose_match(
    line: ImportLine, movements: Iterable[Movement], claimed: set[str]
) -> Optional[Movement]:
    """Return the single unclaimed movement loosely matching a line, if unambiguous."""
    candidates = [
        movement
        for movement in movements
        if movement.id not in claimed
        and movement.date == line.date
        and abs(movement.amount - line.amount) <= AMOUNT_TOLERANCE
        and descriptions_compatible(line.description, movement.description)
    ]
    if len(candidates) == 1:
        return candidates[0]
    if len(candidates) > 1:
        logger.debug(
            "Ambiguous loose match for '%s' on %s: %d candidates, treating as new",
            line.description,
            line.date,
            len(candidates),
        )
    return None


def line_tx_key(card: Card, line: ImportLine) -> str:
    return build_tx_key(
        card.id,
        line.date,
        line.description,
        line.amount,
        line.installment_total,
        line.installment_number,
    )


def reconcile_import_lines(
    card: Card, lines: Sequence[ImportLine], existing: Sequence[Movement]
) -> ReconcileResult:
    """Classify each import line as 'novo' or 'ja_lancado'.

    Args:
        card: Card the statement belongs to
        lines: Import lines in statement order
        existing: Movements snapshot; movements of other cards are ignored

    Returns:
        ReconcileResult with one ReconcileItem per line and the counts
    """
    by_key: dict[str, list[Movement]] = {}
    card_movements: list[Movement] = []
    for movement in existing:
        if movement.card_id != card.id:
            continue
        card_movements.append(movement)
        if movement.tx_key:
            by_key.setdefault(movement.tx_key, []).append(movement)

    claimed: set[str] = set()
    preview: list[ReconcileItem] = []
    for line in lines:
        tx_key = line_tx_key(card, line)
        match = next((m for m in by_key.get(tx_key, []) if m.id not in claimed), None)
        if match is None:
            match = find_loose_match(line, card_movements, claimed)

        if match is not None:
            claimed.add(match.id)
            preview.append(
                ReconcileItem(line=line, tx_key=tx_key, status=LINE_ALREADY_POSTED, movement_id=match.id)
            )
        else:
            preview.append(ReconcileItem(line=line, tx_key=tx_key, status=LINE_NEW))

    total = len(preview)
    conciliados = sum(1 for item in preview if item.status == LINE_ALREADY_POSTED)
    return ReconcileResult(preview=preview, total=total, novos=total - conciliados, conciliados=conciliados)


def filter_lines_by_card_final(
    lines: Sequence[ImportLine], card_final: str
) -> tuple[list[ImportLine], int]:
    """Drop lines printed for a different card final.

    Lines without a card final are kept, as are all lines when the card has
    no final configured.

    Returns:
        Tuple of (kept lines, number of dropped lines)
    """
    target = normalize_card_final(card_final)
    if not target:
        return list(lines), 0
    kept = [
        line
        for line in lines
        if not normalize_card_final(line.card_final) or normalize_card_final(line.card_final) == target
    ]
    return kept, len(lines) - len(kept)
