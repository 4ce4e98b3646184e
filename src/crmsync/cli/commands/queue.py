"""Sync queue inspection commands."""

import click
from crmsync.cli.sync_setup import get_queue
from crmsync.domain.entities import SyncStatus


@click.group("queue")
def queue_group():
    """Inspect and manage the sync queue."""
    pass


@queue_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in SyncStatus]),
    help="Only show items in this state",
)
@click.pass_context
def list_items(ctx, status: str | None):
    """List queued mutations, oldest first."""
    items = get_queue(ctx).list_items(SyncStatus(status) if status else None)
    if not items:
        click.echo("Queue is empty.")
        return

    click.echo(f"{'SEQ':>5}  {'STATUS':10s} {'ACTION':12s} {'TYPE':13s} ID")
    click.echo("-" * 70)
    for item in items:
        click.echo(
            f"{item.seq:5d}  {item.status.value:10s} {item.action.value:12s} "
            f"{item.entity_type.value:13s} {item.item_id}"
        )
        if item.last_error:
            click.echo(f"       {item.last_error}")


@queue_group.command("requeue")
@click.pass_context
def requeue(ctx):
    """Return failed items to pending so the next sync retries them."""
    count = get_queue(ctx).requeue_failed()
    click.echo(f"Requeued {count} failed items")


@queue_group.command("purge")
@click.pass_context
def purge(ctx):
    """Delete delivered items."""
    count = get_queue(ctx).purge()
    click.echo(f"Purged {count} delivered items")


def register_commands(cli):
    """Register queue commands with main CLI."""
    cli.add_command(queue_group)
