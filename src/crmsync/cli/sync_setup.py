"""Wiring of the sync queue and processor for CLI commands."""

import click

from crmsync.domain.sync import SyncProcessor, SyncQueue
from crmsync.remote.base import RemoteStore
from crmsync.remote.factories import create_sheets_client


def get_remote(ctx: click.Context) -> RemoteStore:
    """Return the remote store for this invocation, creating it on first use.

    Raises:
        RemoteStoreError: If the spreadsheet id or token is not configured
    """
    remote = ctx.obj.get("remote")
    if remote is None:
        remote = create_sheets_client(ctx.obj.get("sheets_id"), ctx.obj.get("sheets_token"))
        ctx.obj["remote"] = remote
    return remote


def get_queue(ctx: click.Context) -> SyncQueue:
    """Return the sync queue; commands drain it explicitly."""
    queue = ctx.obj.get("queue")
    if queue is None:
        queue = SyncQueue(ctx.obj["db"])
        ctx.obj["queue"] = queue
    return queue


def get_processor(ctx: click.Context) -> SyncProcessor:
    """Return a processor bound to the configured remote store."""
    processor = ctx.obj.get("processor")
    if processor is None:
        processor = SyncProcessor(
            ctx.obj["db"], get_remote(ctx), delay=ctx.obj.get("sync_delay", 0.3)
        )
        ctx.obj["processor"] = processor
    return processor
