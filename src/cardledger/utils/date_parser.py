"""Date and billing-month utilities."""

import re
from datetime import date, datetime, timedelta, UTC
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports:
    - ISO dates: "2026-02-14"
    - Day-first dates as printed on statements: "14/02/2026", "14.02.2026"
    - Relative dates: "today", "yesterday"

    Args:
        date_str: Date string

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        if ISO_DATE_PATTERN.match(date_str):
            return date.fromisoformat(date_str)
        dt = date_parser.parse(date_str, dayfirst=True)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_month(month_str: str) -> str:
    """Validate a billing month string ("YYYY-MM").

    Raises:
        ValueError: If the string is not a valid month
    """
    month_str = month_str.strip()
    if not MONTH_PATTERN.match(month_str):
        raise ValueError(f"Invalid month '{month_str}', expected YYYY-MM")
    return month_str


def month_of(day: date) -> str:
    """Return the billing month ("YYYY-MM") a date falls in."""
    return f"{day.year:04d}-{day.month:02d}"


def month_last_day(month: str) -> date:
    """Return the last calendar day of a "YYYY-MM" month."""
    year, month_number = (int(part) for part in parse_month(month).split("-"))
    first = date(year, month_number, 1)
    return first + relativedelta(months=1) - timedelta(days=1)


def month_diff(start: str, end: str) -> int:
    """Number of months from start to end; 0 if either is not a valid month."""
    if not MONTH_PATTERN.match(start or "") or not MONTH_PATTERN.match(end or ""):
        return 0
    start_year, start_month = (int(part) for part in start.split("-"))
    end_year, end_month = (int(part) for part in end.split("-"))
    return (end_year - start_year) * 12 + (end_month - start_month)


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the form SQLite hands back."""
    return datetime.now(UTC).replace(tzinfo=None)
