"""CLI error handling helpers."""

import click

from crmsync.domain.errors import DomainError
from crmsync.remote.base import RemoteStoreError


def handle_domain_error(
    ctx: click.Context, error: DomainError | RemoteStoreError | ValueError
) -> None:
    """Render a domain or remote store error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
