"""Command-line interface for s3chunk.

This module provides the main CLI entry point and assembles all commands.

Commands:
- put: Upload files, whole or in chunks
- get: Download objects, wildcard groups or chunked files
- list: List buckets or the keys under a prefix
- configure: Store default backend and endpoint settings
"""

from __future__ import annotations

import logging
import sys

import click

from s3chunk import __version__
from s3chunk.client.cli.config import (
    build_store_config,
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from s3chunk.client.cli.configure import configure
from s3chunk.client.cli.listing import list_cmd
from s3chunk.client.cli.context import CliContext
from s3chunk.client.cli.transfer import get, put
from s3chunk.core.config import BACKENDS


def setup_logging(debug: bool) -> None:
    """Route s3chunk log records to stderr.

    Replaces any handler installed by a previous invocation.
    """
    package_logger = logging.getLogger("s3chunk")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    package_logger.propagate = False


@click.group()
@click.version_option(__version__)
@click.option("--debug", is_flag=True, help="Verbose logging and tracebacks on failure.")
@click.option("--backend", type=click.Choice(BACKENDS), default=None, help="Store backend.")
@click.option("--endpoint-url", default=None, help="S3-compatible endpoint URL.")
@click.option("--region", default=None, help="Region name.")
@click.option("--profile", default=None, help="Credentials profile name.")
@click.option("--local-root", default=None, help="Root directory of the local backend.")
@click.pass_context
def cli(
    ctx: click.Context,
    debug: bool,
    backend: str | None,
    endpoint_url: str | None,
    region: str | None,
    profile: str | None,
    local_root: str | None,
) -> None:
    """s3chunk - Transfer files of any size to and from an object store."""
    setup_logging(debug)
    ctx.obj = CliContext(
        debug=debug,
        overrides={
            "backend": backend,
            "endpoint_url": endpoint_url,
            "region": region,
            "profile": profile,
            "local_root": local_root,
        },
    )


cli.add_command(put)
cli.add_command(get)
cli.add_command(list_cmd)
cli.add_command(configure)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "build_store_config",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
