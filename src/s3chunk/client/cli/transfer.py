"""Transfer commands for s3chunk CLI.

Commands:
- put: Upload local files to a bucket
- get: Download objects from a bucket
"""

from __future__ import annotations

import sys

import click

from s3chunk.client.cli.config import get_backup_index_dir
from s3chunk.client.cli.context import (
    EXIT_INVALID,
    CliContext,
    echo_progress,
    exit_code_for_results,
    report_results,
)
from s3chunk.client.download import FileDownloader
from s3chunk.client.filters import BackupFilter, default_archive_indicator
from s3chunk.client.index import BackupIndex
from s3chunk.client.upload import FileUploader
from s3chunk.core.chunking import DEFAULT_CHUNK_MEGABYTES, megabytes_to_bytes
from s3chunk.core.types import InvalidRequestError, ObjectKey, TransferError


@click.command()
@click.argument("destination")
@click.argument("filename")
@click.option(
    "--big",
    type=float,
    is_flag=False,
    flag_value=DEFAULT_CHUNK_MEGABYTES,
    default=None,
    metavar="[MB]",
    help=f"Split files into chunks of MB megabytes (default {DEFAULT_CHUNK_MEGABYTES:g}).",
)
@click.option("--backup", is_flag=True, help="Only files changed since their last backup.")
@click.option("--new", "new_only", is_flag=True, help="Only files not already in the bucket.")
@click.option("--acl", default=None, help="Canned ACL, e.g. public-read.")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=1, help="Concurrent chunk uploads.")
@click.pass_obj
def put(
    obj: CliContext,
    destination: str,
    filename: str,
    big: float | None,
    backup: bool,
    new_only: bool,
    acl: str | None,
    jobs: int,
) -> None:
    """Upload FILENAME to DESTINATION (bucket[/keyprefix]).

    Wildcards in FILENAME are supported. The file name without its
    directory is appended to the key prefix.

    With --big each file is stored as chunks suffixed .000, .001, ...
    without creating temporary files; --big=0.1 makes chunks of about
    100 KB. --new skips keys (or chunks) already stored, so re-running an
    interrupted chunked upload resumes it.
    """
    target = ObjectKey.parse(destination)
    config, store = obj.open_store()

    backup_filter = None
    indicator = None
    try:
        chunk_size = megabytes_to_bytes(big) if big is not None else None
        if backup:
            indicator = default_archive_indicator(get_backup_index_dir())
            backup_filter = BackupFilter(indicator)

        uploader = FileUploader(store, config, progress_callback=echo_progress, jobs=jobs)
        results = uploader.upload_pattern(
            target.bucket,
            target.key,
            filename,
            chunk_size=chunk_size,
            backup_filter=backup_filter,
            new_only=new_only,
            acl=acl,
        )
    except TransferError as e:
        obj.abort_on(e)
    finally:
        if isinstance(indicator, BackupIndex):
            indicator.close()

    report_results(results)
    sys.exit(exit_code_for_results(results))


@click.command()
@click.argument("source")
@click.argument("filename", required=False)
@click.option("--big", is_flag=True, help="Reassemble a file uploaded with put --big.")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=1, help="Concurrent chunk downloads.")
@click.pass_obj
def get(obj: CliContext, source: str, filename: str | None, big: bool, jobs: int) -> None:
    """Download SOURCE (bucket/key) to FILENAME.

    Without FILENAME the part of the key after its last slash is used.
    A trailing * on the key downloads every matching object, except with
    --big, which fetches a file split by put --big.
    """
    target = ObjectKey.parse(source)
    if not target.key:
        obj.abort(InvalidRequestError(f"Expected bucket/key, got {source!r}"), EXIT_INVALID)

    config, store = obj.open_store()
    downloader = FileDownloader(store, config, progress_callback=echo_progress, jobs=jobs)
    try:
        results = downloader.download(target.bucket, target.key, filename, chunked=big)
    except TransferError as e:
        obj.abort_on(e)

    report_results(results)
    sys.exit(exit_code_for_results(results))
