"""Company commands."""

import click
from crmsync.cli.error_handling import handle_domain_error
from crmsync.cli.sync_setup import get_queue
from crmsync.domain.company import CompanyService
from crmsync.domain.errors import DomainError
from crmsync.domain.notes import NoteService
from crmsync.utils.formatting import format_currency, format_date


@click.group("company")
def company_group():
    """Browse and delete companies."""
    pass


@company_group.command("list")
@click.option("--tag", help="Only companies carrying this tag")
@click.pass_context
def list_companies(ctx, tag: str | None):
    """List companies."""
    service = CompanyService(ctx.obj["db"], get_queue(ctx))
    companies = service.list_companies(tag=tag)
    if not companies:
        click.echo("No companies found.")
        return

    for c in companies:
        status = "active" if c.is_active else "inactive"
        click.echo(f"{c.id:20s} | {c.name[:35]:35s} | {c.tax_id:18s} | {status}")
    click.echo(f"\n{len(companies)} companies")


@company_group.command("show")
@click.argument("company_id")
@click.pass_context
def show_company(ctx, company_id: str):
    """Show one company with its history and notes."""
    db = ctx.obj["db"]
    company = CompanyService(db, get_queue(ctx)).get_company(company_id)
    if company is None:
        click.echo(f"Error: Company '{company_id}' not found", err=True)
        ctx.exit(1)
        return

    click.echo(f"\n{company.name} ({company.id})")
    click.echo("-" * 60)
    click.echo(f"Tax id:         {company.tax_id or '-'}")
    click.echo(f"Trade name:     {company.trade_name or '-'}")
    click.echo(f"City:           {company.city or '-'} {company.state}")
    click.echo(f"Phone:          {company.phone or company.mobile or '-'}")
    click.echo(f"Email:          {company.email or '-'}")
    click.echo(f"Representative: {company.representative or '-'}")
    click.echo(f"Active:         {'yes' if company.is_active else 'no'}")
    if company.is_lead:
        click.echo(f"Lead:           {company.lead_status or '-'} (SDR: {company.sdr or '-'})")
    click.echo(f"Tags:           {', '.join(company.tags) or '-'}")
    click.echo(
        f"Last purchase:  {format_date(company.last_purchase_date)} "
        f"{format_currency(company.last_purchase_value)}"
    )

    if company.purchases:
        click.echo(f"\nPurchases ({len(company.purchases)}):")
        for p in company.purchases:
            click.echo(f"  {format_date(p.date)}  #{p.order_id or '-':10s} {format_currency(p.value)}")

    if company.delinquencies:
        click.echo(f"\nDelinquencies ({len(company.delinquencies)}):")
        for d in company.delinquencies:
            click.echo(f"  {format_date(d.date)}  {format_currency(d.value)}  {d.status}  {d.origin}")

    notes = NoteService(db, get_queue(ctx)).list_notes(company.id)
    if notes:
        click.echo(f"\nNotes ({len(notes)}):")
        for n in notes:
            first_line = n.content.splitlines()[0] if n.content else ""
            click.echo(f"  {n.created_at:%d/%m/%Y}  {first_line}")


@company_group.command("delete")
@click.argument("company_ids", nargs=-1, required=True)
@click.confirmation_option(prompt="Delete these companies?")
@click.pass_context
def delete_companies(ctx, company_ids: tuple[str, ...]):
    """Delete companies from the local cache."""
    service = CompanyService(ctx.obj["db"], get_queue(ctx))
    try:
        count = service.delete_companies(company_ids)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted {count} companies")


def register_commands(cli):
    """Register company commands with main CLI."""
    cli.add_command(company_group)
