"""Totals and totalizer generation commands."""

import click
from cardledger.cli.error_handling import reported_errors, resolve_card_or_exit
from cardledger.domain.card import CardService
from cardledger.domain.entities import BANKS, PAYERS, CardTotals, SyncResult, TOTALIZER_BUCKETS
from cardledger.domain.totalizer_service import DEFAULT_CATEGORY, TotalizerService


def totalizer_service(ctx: click.Context) -> TotalizerService:
    """Build the totalizer service from the stores opened by the main group."""
    with reported_errors(ctx):
        return TotalizerService(
            ctx.obj["db"],
            ctx.obj["ledger"],
            ctx.obj["legacy"],
            ambos_i_bucket=ctx.obj.get("ambos_i_bucket"),
        )


def echo_totals(totals: CardTotals) -> None:
    click.echo(f"\nTotals for {totals.bank} {totals.month}:")
    click.echo("-" * 40)
    for bucket in TOTALIZER_BUCKETS:
        click.echo(f"  {bucket:10s} {totals.by_attribution.get(bucket, 0):>12.2f}")
    if totals.unbucketed:
        click.echo(f"  {'AMBOS_I':10s} {totals.unbucketed:>12.2f} (no bucket configured)")
    click.echo(f"  Pending classification: {totals.pending}")
    click.echo(f"  Installments in month: {totals.installments_in_month:.2f}")
    click.echo(f"  Open installments: {totals.open_installments:.2f}")
    click.echo(f"  Open installments (projected): {totals.open_installments_projected:.2f}")


def echo_sync_result(sync: SyncResult) -> None:
    prefix = "Would apply" if sync.dry_run else "Applied"
    click.echo(
        f"{prefix}: {sync.created} created, {sync.updated} updated, "
        f"{sync.deleted} deleted, {sync.unchanged} unchanged"
    )
    for outcome in sync.legacy_results:
        detail = f" {outcome.message}" if outcome.message else ""
        where = f" [{outcome.range}]" if outcome.range else ""
        click.echo(f"  legacy {outcome.action} {outcome.description}: {outcome.status}{where}{detail}")
    for error in sync.errors:
        click.echo(f"  {error}", err=True)


@click.command("totals")
@click.option("--bank", required=True, type=click.Choice(BANKS), help="Card bank")
@click.option("--month", required=True, help="Billing month (YYYY-MM)")
@click.option("--card", help="Restrict totals to one card (name or ID)")
@click.pass_context
def show_totals(ctx, bank: str, month: str, card: str | None):
    """Show the attribution totals of a bank for a billing month.

    Examples:
        cardledger totals --bank C6 --month 2026-02
        cardledger totals --bank BB --month 2026-02 --card "BB Dea"
    """
    service = totalizer_service(ctx)
    card_id = resolve_card_or_exit(ctx, CardService(ctx.obj["db"]), card) if card else None

    with reported_errors(ctx):
        totals = service.get_totals(month=month, bank=bank, card_id=card_id)
        echo_totals(totals)


@click.group()
def totalizer_group():
    """Post monthly card totals to the ledger."""
    pass


@totalizer_group.command("generate")
@click.option("--bank", required=True, type=click.Choice(BANKS), help="Card bank")
@click.option("--month", required=True, help="Billing month (YYYY-MM)")
@click.option("--payer", required=True, type=click.Choice(PAYERS), help="Who pays the statement")
@click.option("--category", default=DEFAULT_CATEGORY, show_default=True, help="Ledger category")
@click.option("--dry-run", is_flag=True, help="Show what would change without writing")
@click.pass_context
def generate(ctx, bank: str, month: str, payer: str, category: str, dry_run: bool):
    """Create or update the totalizer entries of a bank for a month.

    Refuses to run while movements of the month are pending classification.

    Examples:
        cardledger totalizer generate --bank C6 --month 2026-02 --payer WALKER
        cardledger totalizer generate --bank C6 --month 2026-02 --payer WALKER --dry-run
    """
    service = totalizer_service(ctx)

    with reported_errors(ctx):
        result = service.generate(month=month, bank=bank, payer=payer, category=category, dry_run=dry_run)
        for entry in result.planned:
            click.echo(f"  {entry.description:12s} {entry.amount:>12.2f}  {entry.date.isoformat()}")
        if not result.planned:
            click.echo("  Nothing to post: all buckets are zero")
        echo_sync_result(result.sync)


def register_commands(cli):
    """Register totals and totalizer commands with main CLI."""
    cli.add_command(show_totals)
    cli.add_command(totalizer_group, name="totalizer")
