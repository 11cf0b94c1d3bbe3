"""Parsers shared by CLI commands for allocation and installment options."""

import click

from cardledger.domain.entities import AllocationInput
from cardledger.utils.amount_parser import parse_amount


def parse_splits(values: tuple[str, ...]) -> list[AllocationInput]:
    """Parse repeated --split TAG=AMOUNT options."""
    allocations = []
    for value in values:
        tag, sep, amount = value.partition("=")
        if not sep or not tag.strip():
            raise click.BadParameter(f"'{value}' is not TAG=AMOUNT", param_hint="--split")
        try:
            parsed = parse_amount(amount)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--split")
        allocations.append(AllocationInput(attribution=tag.strip().upper(), amount=parsed))
    return allocations


def parse_installment(value: str | None) -> tuple[int | None, int | None]:
    """Parse an --installment N/TOTAL option into (total, number)."""
    if not value:
        return None, None
    number, sep, total = value.partition("/")
    try:
        if not sep:
            raise ValueError
        return int(total), int(number)
    except ValueError:
        raise click.BadParameter(f"'{value}' is not N/TOTAL", param_hint="--installment")
