"""Canonical identity key (tx_key) for card movements."""

import re
from datetime import date
from decimal import Decimal
from typing import Optional

from cardledger.utils.amount_parser import to_money
from cardledger.utils.text import normalize_description

INSTALLMENT_SUFFIX = re.compile(r"\|\d+/\d+$")


def build_tx_key(
    card_id: str,
    day: date,
    description: str,
    amount: Decimal | float,
    installment_total: Optional[int] = None,
    installment_number: Optional[int] = None,
) -> str:
    """Build the fingerprint of a card transaction.

    The key is ``card_id|YYYY-MM-DD|NORMALIZED DESC|amount|number/total``.
    Missing installment data counts as 1/1. Identical real-world purchases on
    the same day collide on purpose; callers must not treat the key as unique.
    """
    total = installment_total if installment_total and installment_total > 1 else 1
    number = installment_number if installment_number and installment_number > 0 else 1
    return "|".join(
        [
            card_id,
            day.isoformat(),
            normalize_description(description),
            f"{to_money(amount):.2f}",
            f"{number}/{total}",
        ]
    )


def purchase_key(tx_key: str) -> str:
    """Key shared by every installment of one purchase (tx_key without number/total)."""
    return INSTALLMENT_SUFFIX.sub("", tx_key.strip())
