"""Card movement commands."""

import click
from cardledger.cli.commands.totalizer import echo_sync_result, totalizer_service
from cardledger.cli.error_handling import handle_domain_error, reported_errors, resolve_card_or_exit
from cardledger.cli.options import parse_installment, parse_splits
from cardledger.domain.card import CardService, default_attribution_for_card
from cardledger.domain.entities import (
    MOVEMENT_STATUSES,
    STATUS_PENDING,
    STATUS_RECONCILED,
    AllocationInput,
    Movement,
)
from cardledger.domain.errors import RowNotFoundError
from cardledger.domain.movement import MovementService
from cardledger.domain.totalizer_service import movement_target
from cardledger.utils.amount_parser import parse_amount
from cardledger.utils.date_parser import parse_date


def resolve_movement_or_exit(ctx: click.Context, service: MovementService, movement: str) -> Movement:
    """Find a movement by ID or unique ID prefix, or exit with a CLI error."""
    found = service.get_movement(movement)
    if found is not None:
        return found
    matches = [m for m in service.list_movements() if m.id.startswith(movement)] if len(movement) >= 4 else []
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        click.echo(f"Error: Movement ID prefix '{movement}' is ambiguous", err=True)
        ctx.exit(1)
    handle_domain_error(ctx, RowNotFoundError("movement", movement))


def refresh_totalizers(ctx: click.Context, before: Movement | None, after: Movement | None) -> None:
    """Re-sync totalizers of months a change touched, if they were already posted."""
    results = totalizer_service(ctx).refresh_closed_months([movement_target(before), movement_target(after)])
    for result in results:
        click.echo(f"Refreshed totalizers of {result.bank} {result.month}")
        echo_sync_result(result.sync)


def format_allocations(movement: Movement) -> str:
    return ", ".join(f"{a.attribution}={a.amount:.2f}" for a in movement.allocations) or "-"


@click.group()
def movement_group():
    """Manage card movements."""
    pass


@movement_group.command("add")
@click.option("--card", required=True, help="Card name or ID")
@click.option("--date", "date_str", required=True, help="Purchase date (YYYY-MM-DD, DD/MM/YYYY, today)")
@click.option("--description", required=True, help="Purchase description")
@click.option("--amount", "amount_str", required=True, help="Amount (e.g. 120.50 or 'R$ 1.234,56')")
@click.option("--month", "month_ref", help="Billing month (YYYY-MM); defaults to the month of the date")
@click.option("--installment", help="Installment as N/TOTAL")
@click.option(
    "--split",
    "splits",
    multiple=True,
    help="Allocation as ATTRIBUTION=AMOUNT; repeat to split. Classifies the movement",
)
@click.option("--note", default="", help="Free text note")
@click.pass_context
def add_movement(
    ctx,
    card: str,
    date_str: str,
    description: str,
    amount_str: str,
    month_ref: str | None,
    installment: str | None,
    splits: tuple[str, ...],
    note: str,
):
    """Record a card movement by hand.

    Without --split the movement is allocated in full to the card default
    and left pending classification.

    Examples:
        cardledger movement add --card "C6 Walker" --date 2026-02-10 --description "Mercado" --amount 120
        cardledger movement add --card "C6 Walker" --date 10/02/2026 --description "Sofa" \\
            --amount 300 --installment 1/10 --split AMBOS=300
    """
    db = ctx.obj["db"]
    card_service = CardService(db)
    card_id = resolve_card_or_exit(ctx, card_service, card)
    installment_total, installment_number = parse_installment(installment)
    allocations = parse_splits(splits)

    with reported_errors(ctx):
        amount = parse_amount(amount_str)
        if not allocations:
            attribution = default_attribution_for_card(card_service.get_card(card_id))
            allocations = [AllocationInput(attribution=attribution, amount=amount)]
        movement = MovementService(db).save_movement(
            card_id=card_id,
            date=parse_date(date_str),
            description=description,
            amount=amount,
            allocations=allocations,
            status=STATUS_RECONCILED if splits else STATUS_PENDING,
            month_ref=month_ref,
            installment_total=installment_total,
            installment_number=installment_number,
            note=note,
        )
        click.echo(f"Created movement {movement.id} ({movement.status}, {movement.month_ref})")
        refresh_totalizers(ctx, None, movement)


@movement_group.command("list")
@click.option("--month", "month_ref", help="Billing month (YYYY-MM)")
@click.option("--card", help="Card name or ID")
@click.option("--status", type=click.Choice(MOVEMENT_STATUSES), help="Movement status")
@click.pass_context
def list_movements(ctx, month_ref: str | None, card: str | None, status: str | None):
    """List movements, most recent first."""
    db = ctx.obj["db"]
    card_id = resolve_card_or_exit(ctx, CardService(db), card) if card else None

    with reported_errors(ctx):
        movements = MovementService(db).list_movements(month_ref=month_ref, card_id=card_id, status=status)

    if not movements:
        click.echo("No movements found.")
        return

    click.echo(f"\n{'ID':8s} | {'Date':10s} | {'Month':7s} | {'Card':15s} | {'Description':30s} | {'Amount':>10s} | Status")
    click.echo("-" * 120)
    for m in movements:
        card_name = m.card.name if m.card else m.card_id[:8]
        description = m.description
        if m.is_installment:
            description = f"{description} ({m.installment_number}/{m.installment_total})"
        click.echo(
            f"{m.id[:8]} | {m.date.isoformat()} | {m.month_ref} | {card_name[:15]:15s} | "
            f"{description[:30]:30s} | {m.amount:>10.2f} | {m.status:10s} | {format_allocations(m)}"
        )


@movement_group.command("classify")
@click.argument("movement", metavar="MOVEMENT_ID")
@click.option(
    "--split",
    "splits",
    multiple=True,
    required=True,
    help="Allocation as ATTRIBUTION=AMOUNT; repeat to split",
)
@click.pass_context
def classify_movement(ctx, movement: str, splits: tuple[str, ...]):
    """Set the allocations of a movement and mark it classified.

    Examples:
        cardledger movement classify 3f2a91c0 --split WALKER=80 --split DEA=40
    """
    service = MovementService(ctx.obj["db"])
    current = resolve_movement_or_exit(ctx, service, movement)
    allocations = parse_splits(splits)

    with reported_errors(ctx):
        updated = service.classify(current.id, allocations)
        click.echo(f"Classified '{updated.description}': {format_allocations(updated)}")
        refresh_totalizers(ctx, current, updated)


@movement_group.command("edit")
@click.argument("movement", metavar="MOVEMENT_ID")
@click.option("--date", "date_str", help="New purchase date")
@click.option("--description", help="New description")
@click.option("--amount", "amount_str", help="New amount")
@click.option("--month", "month_ref", help="New billing month (YYYY-MM)")
@click.option("--note", help="New note")
@click.pass_context
def edit_movement(
    ctx,
    movement: str,
    date_str: str | None,
    description: str | None,
    amount_str: str | None,
    month_ref: str | None,
    note: str | None,
):
    """Edit a movement; its allocations are kept.

    A changed date, description or amount gives the movement a new fingerprint.
    """
    service = MovementService(ctx.obj["db"])
    current = resolve_movement_or_exit(ctx, service, movement)

    with reported_errors(ctx):
        fields_changed = date_str is not None or description is not None or amount_str is not None
        updated = service.save_movement(
            card_id=current.card_id,
            date=parse_date(date_str) if date_str else current.date,
            description=description if description is not None else current.description,
            amount=parse_amount(amount_str) if amount_str else current.amount,
            allocations=[
                AllocationInput(attribution=a.attribution, amount=a.amount, id=a.id)
                for a in current.allocations
            ],
            origin=current.origin,
            status=current.status,
            month_ref=month_ref,
            installment_total=current.installment_total,
            installment_number=current.installment_number,
            note=note if note is not None else current.note,
            tx_key=None if fields_changed else current.tx_key,
            movement_id=current.id,
        )
        click.echo(f"Updated movement {updated.id}")
        refresh_totalizers(ctx, current, updated)


@movement_group.command("delete")
@click.argument("movement", metavar="MOVEMENT_ID")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_movement(ctx, movement: str, yes: bool):
    """Delete a movement and its allocations."""
    service = MovementService(ctx.obj["db"])
    current = resolve_movement_or_exit(ctx, service, movement)

    if not yes and not click.confirm(
        f"Are you sure you want to delete '{current.description}' ({current.amount:.2f}, {current.date})?"
    ):
        click.echo("Deletion cancelled.")
        return

    with reported_errors(ctx):
        deleted = service.delete_movement(current.id)
        click.echo(f"Deleted movement '{current.description}'")
        refresh_totalizers(ctx, deleted, None)


def register_commands(cli):
    """Register movement commands with main CLI."""
    cli.add_command(movement_group, name="movement")
