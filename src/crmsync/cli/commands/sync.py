"""Remote sync commands."""

import asyncio

import click
from crmsync.cli.error_handling import handle_domain_error
from crmsync.cli.sync_setup import get_processor, get_queue, get_remote
from crmsync.domain.refresh import RefreshService
from crmsync.remote.base import RemoteStoreError


@click.command("sync")
@click.pass_context
def sync_queue(ctx):
    """Push pending changes to the remote spreadsheet.

    Items left mid-delivery by an interrupted run are retried first.
    """
    queue = get_queue(ctx)
    recovered = queue.recover_in_flight()
    if recovered:
        click.echo(f"Recovered {recovered} interrupted items")

    if queue.pending_count() == 0:
        click.echo("Nothing to sync.")
        return

    try:
        report = asyncio.run(get_processor(ctx).drain())
    except RemoteStoreError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Synced: {report.delivered} delivered, {report.failed} failed")
    if report.failed:
        click.echo("Run 'crmsync queue list --status failed' for details.", err=True)


@click.command("refresh")
@click.pass_context
def refresh(ctx):
    """Rebuild the local cache from the remote spreadsheet."""
    db = ctx.obj["db"]
    pending = get_queue(ctx).pending_count()
    if pending:
        click.echo(
            f"Warning: {pending} changes not yet synced will be hidden until the next sync.",
            err=True,
        )

    try:
        snapshot = RefreshService(db, get_remote(ctx)).fetch_all()
    except RemoteStoreError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(
        f"Local cache has {len(snapshot.companies)} companies, "
        f"{len(snapshot.notes)} notes, {len(snapshot.import_batches)} import batches"
    )


def register_commands(cli):
    """Register sync commands with main CLI."""
    cli.add_command(sync_queue)
    cli.add_command(refresh)
