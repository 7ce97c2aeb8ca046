"""Listing command for s3chunk CLI.

Commands:
- list: List buckets, or the keys of a bucket under a prefix
"""

from __future__ import annotations

import click

from s3chunk.client.cli.context import CliContext
from s3chunk.client.listing import list_catalog
from s3chunk.core.types import ListEntry, ObjectKey, TransferError


def format_entry(entry: ListEntry) -> str:
    """Format one listing line: last modified, size in MB, key."""
    size_mb = entry.size / (1024 * 1024)
    return f"{entry.last_modified:%Y-%m-%d %H:%M:%S}\t{size_mb:.1f}M\t{entry.key}"


@click.command("list")
@click.argument("target", required=False)
@click.pass_obj
def list_cmd(obj: CliContext, target: str | None) -> None:
    """List the keys of TARGET (bucket[/keyprefix]).

    A trailing * on the key prefix is ignored. Without TARGET, lists
    the buckets.
    """
    config, store = obj.open_store()

    try:
        if target is None:
            buckets = store.list_buckets()
            for name in buckets:
                click.echo(name)
            click.echo(f"{len(buckets)} buckets listed")
            return

        location = ObjectKey.parse(target)
        prefix = location.key.removesuffix("*")
        count = 0
        for entry in list_catalog(store, location.bucket, prefix, config.page_size):
            click.echo(format_entry(entry))
            count += 1
        click.echo(f"{count} files listed")
    except TransferError as e:
        obj.abort_on(e)
