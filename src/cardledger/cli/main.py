"""Main CLI entry point."""

import logging

import click
from cardledger import __version__
from cardledger.database.factories import create_sqlite_database
from cardledger.ledger.factories import create_ledger_store, create_legacy_mirror

# Import and register all commands at module level
from cardledger.cli.commands import card, import_cmd, movement, totalizer


@click.group()
@click.version_option(version=__version__, prog_name="cardledger")
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides CARDLEDGER_DB_PATH environment variable)",
    envvar="CARDLEDGER_DB_PATH",
)
@click.option(
    "--legacy-path",
    type=click.Path(),
    help="CSV file mirroring ledger entries (overrides CARDLEDGER_LEGACY_PATH)",
    envvar="CARDLEDGER_LEGACY_PATH",
)
@click.option(
    "--ambos-i-bucket",
    help="Bucket AMBOS_I allocations are totalized into: WALKER, AMBOS or DEA",
    envvar="CARDLEDGER_AMBOS_I_BUCKET",
)
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, legacy_path: str | None, ambos_i_bucket: str | None, verbose: bool):
    """Cardledger - Household credit card ledger.

    Import card statements, reconcile them against recorded movements, split
    each purchase between household members and post monthly totals to the
    shared ledger.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Open stores only when actually running a command (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ledger = create_ledger_store(db.database_path)
        ctx.obj["db"] = db
        ctx.obj["ledger"] = ledger
        ctx.obj["legacy"] = create_legacy_mirror(legacy_path)
        ctx.obj["ambos_i_bucket"] = ambos_i_bucket
        ctx.call_on_close(ledger.close)
        ctx.call_on_close(db.disconnect)


# Register all commands
card.register_commands(cli)
movement.register_commands(cli)
import_cmd.register_commands(cli)
totalizer.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
