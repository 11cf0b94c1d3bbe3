"""CLI error handling helpers."""

from contextlib import contextmanager
from typing import Iterator

import click

from cardledger.domain.card import CardService
from cardledger.domain.errors import DomainError
from cardledger.utils.card_resolver import resolve_card


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError | OSError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


@contextmanager
def reported_errors(ctx: click.Context) -> Iterator[None]:
    """Turn domain and file errors raised inside the block into a CLI failure."""
    try:
        yield
    except (ValueError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)


def resolve_card_or_exit(ctx: click.Context, card_service: CardService, card: str) -> str:
    """Resolve card name or ID, or exit with a CLI error."""
    try:
        return resolve_card(card_service, card)
    except DomainError as exc:
        handle_domain_error(ctx, exc)
