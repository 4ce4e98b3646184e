"""Spreadsheet import command."""

import asyncio

import click
from crmsync.cli.error_handling import handle_domain_error
from crmsync.cli.sync_setup import get_processor, get_queue
from crmsync.domain.entities import ImportType
from crmsync.domain.errors import DomainError
from crmsync.domain.reconciliation import ReconciliationService
from crmsync.remote.base import RemoteStoreError


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--tag", required=True, help="Source tag applied to every imported company")
@click.option(
    "--type",
    "import_type",
    type=click.Choice([t.value for t in ImportType]),
    help="Pin the import type instead of inferring it from the headers",
)
@click.option("--sync", "sync_now", is_flag=True, help="Push queued changes right after importing")
@click.pass_context
def import_csv(ctx, csv_file: str, tag: str, import_type: str | None, sync_now: bool):
    """Import a sales, delinquency or contact list export.

    Examples:
        crmsync import vendas_marco.csv --tag "VENDAS MARCO"
        crmsync import inadimplentes.csv --tag SERASA --type delinquency --sync
    """
    db = ctx.obj["db"]
    service = ReconciliationService(db, get_queue(ctx))

    try:
        report = service.import_file(csv_file, tag_name=tag, declared_type=import_type)
    except (DomainError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)
        return

    click.echo("\nImport complete:")
    click.echo(f"  Type: {report.import_type.value}")
    click.echo(f"  Matched: {report.matched} of {report.total} rows")
    click.echo(f"  Created: {report.created} companies")
    click.echo(f"  Notes: {report.notes}")
    click.echo(f"  Batch: {report.batch.id} ({report.batch.color})")

    if sync_now:
        try:
            result = asyncio.run(get_processor(ctx).drain())
        except RemoteStoreError as e:
            handle_domain_error(ctx, e)
            return
        click.echo(f"  Synced: {result.delivered} delivered, {result.failed} failed")


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_csv)
