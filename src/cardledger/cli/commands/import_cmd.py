"""Statement import command."""

import click
from cardledger.cli.error_handling import reported_errors, resolve_card_or_exit
from cardledger.domain.card import CardService
from cardledger.domain.card_import import CardImportService, load_import_lines
from cardledger.domain.entities import LINE_ALREADY_POSTED


@click.command("import")
@click.argument("lines_file", type=click.Path(exists=True))
@click.option("--card", required=True, help="Card name or ID")
@click.option("--month", "statement_month", help="Statement month (YYYY-MM) for all lines")
@click.option("--dry-run", is_flag=True, help="Reconcile and show the preview without writing")
@click.pass_context
def import_lines(ctx, lines_file: str, card: str, statement_month: str | None, dry_run: bool):
    """Import statement lines from a JSON or CSV file.

    Lines already recorded for the card are recognized and not duplicated;
    the others become movements pending classification.

    Examples:
        cardledger import fatura.json --card "C6 Walker" --month 2026-02
        cardledger import fatura.csv --card "C6 Walker" --dry-run
    """
    db = ctx.obj["db"]
    card_id = resolve_card_or_exit(ctx, CardService(db), card)
    service = CardImportService(db)

    with reported_errors(ctx):
        lines = load_import_lines(lines_file)
        result = service.run(card_id, lines, statement_month=statement_month, dry_run=dry_run)

        if dry_run:
            click.echo("\nPreview:")
            for item in result.preview:
                marker = "=" if item.status == LINE_ALREADY_POSTED else "+"
                line = item.line
                click.echo(f"  {marker} {line.date.isoformat()} {line.description:30s} {line.amount:>10.2f}  {item.status}")

        click.echo(f"\nImport {'preview' if dry_run else 'complete'} for card '{result.card.name}':")
        click.echo(f"  Lines: {result.total}")
        click.echo(f"  Already posted: {result.conciliados}")
        click.echo(f"  New: {result.novos}")
        if result.filtered_by_card_final:
            click.echo(f"  Ignored (other card final): {result.filtered_by_card_final}")
        if not dry_run:
            click.echo(f"  Imported: {result.imported} ({result.default_status}, {result.default_attribution})")
            if result.realigned_month_ref:
                click.echo(f"  Moved to statement month: {result.realigned_month_ref}")


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_lines)
