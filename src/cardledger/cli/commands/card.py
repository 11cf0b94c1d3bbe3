"""Card management commands."""

import click
from cardledger.cli.error_handling import reported_errors, resolve_card_or_exit
from cardledger.domain.card import CardService
from cardledger.domain.entities import ATTRIBUTIONS, BANKS, HOLDERS


@click.group()
def card_group():
    """Manage credit cards."""
    pass


@card_group.command("add")
@click.argument("name", metavar="CARD_NAME")
@click.option("--bank", required=True, type=click.Choice(BANKS), help="Issuing bank")
@click.option("--holder", required=True, type=click.Choice(HOLDERS), help="Card holder")
@click.option("--final", "card_final", default="", help="Last digits printed on the card")
@click.option(
    "--attribution",
    type=click.Choice(ATTRIBUTIONS),
    default="AMBOS",
    show_default=True,
    help="Attribution given to imported movements before classification",
)
@click.pass_context
def add_card(ctx, name: str, bank: str, holder: str, card_final: str, attribution: str):
    """Register a new card.

    Examples:
        cardledger card add "C6 Walker" --bank C6 --holder WALKER --final 1234
        cardledger card add "BB Dea" --bank BB --holder DEA
    """
    service = CardService(ctx.obj["db"])

    with reported_errors(ctx):
        card = service.save_card(
            name=name,
            bank=bank,
            holder=holder,
            card_final=card_final,
            default_attribution=attribution,
        )
        click.echo(f"Created card '{card.name}' (ID: {card.id})")


@card_group.command("list")
@click.pass_context
def list_cards(ctx):
    """List all cards."""
    service = CardService(ctx.obj["db"])

    cards = service.list_cards()
    if not cards:
        click.echo("No cards found.")
        return

    click.echo("\nCards:")
    click.echo("-" * 90)
    for card in cards:
        status = "" if card.active else " (inactive)"
        click.echo(
            f"{card.id[:8]} | {card.name:20s} | {card.bank:5s} | {card.holder:7s} | "
            f"final {card.card_final or '-':6s} | default {card.default_attribution}{status}"
        )


@card_group.command("edit")
@click.argument("card", metavar="CARD")
@click.option("--name", help="New card name")
@click.option("--bank", type=click.Choice(BANKS), help="New bank")
@click.option("--holder", type=click.Choice(HOLDERS), help="New holder")
@click.option("--final", "card_final", help="New card final")
@click.option("--attribution", type=click.Choice(ATTRIBUTIONS), help="New default attribution")
@click.option("--active/--inactive", default=None, help="Enable or disable the card")
@click.pass_context
def edit_card(
    ctx,
    card: str,
    name: str | None,
    bank: str | None,
    holder: str | None,
    card_final: str | None,
    attribution: str | None,
    active: bool | None,
) -> None:
    """Edit a card.

    CARD can be a card name or ID. Options not given keep their value.

    Examples:
        cardledger card edit "C6 Walker" --final 9876
        cardledger card edit 3f2a --inactive
    """
    service = CardService(ctx.obj["db"])
    card_id = resolve_card_or_exit(ctx, service, card)
    current = service.require_card(card_id)

    with reported_errors(ctx):
        updated = service.save_card(
            name=name if name is not None else current.name,
            bank=bank or current.bank,
            holder=holder or current.holder,
            card_final=card_final if card_final is not None else current.card_final,
            default_attribution=attribution or current.default_attribution,
            active=active if active is not None else current.active,
            card_id=card_id,
        )
        click.echo(f"Updated card '{updated.name}'")


@card_group.command("delete")
@click.argument("card", metavar="CARD")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_card(ctx, card: str, yes: bool) -> None:
    """Delete a card together with its movements.

    CARD can be a card name or ID.

    Examples:
        cardledger card delete "C6 Walker"
    """
    db = ctx.obj["db"]
    service = CardService(db)
    card_id = resolve_card_or_exit(ctx, service, card)
    card_obj = service.require_card(card_id)

    movement_count = len(db.list_movements(card_id=card_id))
    prompt = f"Are you sure you want to delete card '{card_obj.name}'"
    if movement_count:
        prompt += f" and its {movement_count} movement{'s' if movement_count != 1 else ''}"
    if not yes and not click.confirm(prompt + "?"):
        click.echo("Deletion cancelled.")
        return

    with reported_errors(ctx):
        service.delete_card(card_id)
        click.echo(f"Deleted card '{card_obj.name}'")


def register_commands(cli):
    """Register card commands with main CLI."""
    cli.add_command(card_group, name="card")
