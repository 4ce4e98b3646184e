"""Import batch commands."""

import click
from crmsync.cli.error_handling import handle_domain_error
from crmsync.cli.sync_setup import get_queue
from crmsync.domain.entities import BATCH_COLORS
from crmsync.domain.errors import DomainError
from crmsync.domain.import_batch import ImportBatchService


@click.group("batch")
def batch_group():
    """Manage import batch records."""
    pass


@batch_group.command("list")
@click.pass_context
def list_batches(ctx):
    """List import batches, newest first."""
    service = ImportBatchService(ctx.obj["db"], get_queue(ctx))
    batches = service.list_batches()
    if not batches:
        click.echo("No import batches found.")
        return

    click.echo("\nImport batches:")
    click.echo("-" * 80)
    for b in batches:
        click.echo(
            f"{b.id} | {b.imported_at:%d/%m/%Y %H:%M} | {b.tag_name:20s} | {b.type.value:11s} | "
            f"{b.matched_count}/{b.total_rows} matched | {b.color}"
        )


@batch_group.command("recolor")
@click.argument("batch_id")
@click.argument("color", type=click.Choice(BATCH_COLORS))
@click.pass_context
def recolor(ctx, batch_id: str, color: str):
    """Change the display color of a batch."""
    service = ImportBatchService(ctx.obj["db"], get_queue(ctx))
    try:
        service.recolor(batch_id, color)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Batch {batch_id} is now {color}")


@batch_group.command("delete")
@click.argument("batch_id")
@click.confirmation_option(prompt="Delete this batch record? Imported companies are kept.")
@click.pass_context
def delete(ctx, batch_id: str):
    """Delete a batch record (companies it touched are kept)."""
    service = ImportBatchService(ctx.obj["db"], get_queue(ctx))
    try:
        service.delete(batch_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted batch {batch_id}")


def register_commands(cli):
    """Register batch commands with main CLI."""
    cli.add_command(batch_group)
