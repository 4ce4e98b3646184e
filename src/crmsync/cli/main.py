"""Main CLI entry point."""

import click
from crmsync.database.factories import create_sqlite_database
from crmsync.logging_config import setup_logging

# Import and register all commands at module level
from crmsync.cli.commands import (
    batch,
    company,
    import_cmd,
    queue,
    sync,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides CRMSYNC_DB_PATH environment variable)",
    envvar="CRMSYNC_DB_PATH",
)
@click.option(
    "--sheets-id",
    help="Remote spreadsheet id (overrides CRMSYNC_SHEETS_ID)",
    envvar="CRMSYNC_SHEETS_ID",
)
@click.option(
    "--sheets-token",
    help="Access token for the remote spreadsheet (overrides CRMSYNC_SHEETS_TOKEN)",
    envvar="CRMSYNC_SHEETS_TOKEN",
)
@click.option(
    "--sync-delay",
    type=float,
    default=0.3,
    show_default=True,
    help="Seconds to wait between remote calls",
    envvar="CRMSYNC_SYNC_DELAY",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx,
    db_path: str | None,
    sheets_id: str | None,
    sheets_token: str | None,
    sync_delay: float,
    verbose: bool,
):
    """crmsync - CRM spreadsheet reconciliation and sync.

    Import sales, delinquency and contact exports into the local company
    cache, then push the queued changes to the remote spreadsheet.
    """
    ctx.ensure_object(dict)
    setup_logging(verbose=verbose, force=True)

    ctx.obj.setdefault("sheets_id", sheets_id)
    ctx.obj.setdefault("sheets_token", sheets_token)
    ctx.obj.setdefault("sync_delay", sync_delay)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None and "db" not in ctx.obj:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db


# Register all commands
import_cmd.register_commands(cli)
sync.register_commands(cli)
queue.register_commands(cli)
batch.register_commands(cli)
company.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
