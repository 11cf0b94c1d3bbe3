"""Utility functions for cardledger."""

from cardledger.utils.date_parser import parse_date, parse_month, month_of, month_last_day
from cardledger.utils.amount_parser import parse_amount, to_money
from cardledger.utils.text import normalize_description, normalize_for_match, normalize_card_final

__all__ = [
    "parse_date",
    "parse_month",
    "month_of",
    "month_last_day",
    "parse_amount",
    "to_money",
    "normalize_description",
    "normalize_for_match",
    "normalize_card_final",
]
