"""Shared state and error reporting for s3chunk CLI commands."""

from __future__ import annotations

import sys
import traceback
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import NoReturn

import click

from s3chunk.client.cli.config import build_store_config
from s3chunk.client.store import ObjectStore, create_store
from s3chunk.core.config import StoreConfig
from s3chunk.core.types import (
    InvalidRequestError,
    LocalFileError,
    NotFoundError,
    Outcome,
    SequenceGapError,
    TransferError,
    TransferProgress,
    TransferResult,
)

# Process exit codes
EXIT_OK = 0
EXIT_TRANSPORT = 1
EXIT_NOT_FOUND = 2
EXIT_INVALID = 3


@dataclass
class CliContext:
    """Options of the command group, shared with every command."""

    debug: bool = False
    overrides: dict[str, str | None] = field(default_factory=dict)

    def open_store(self) -> tuple[StoreConfig, ObjectStore]:
        """Build the store configuration and its adapter for this run."""
        try:
            config = build_store_config(**self.overrides)
            return config, create_store(config)
        except (ValueError, OSError) as e:
            self.abort(e, EXIT_INVALID)

    def abort(self, error: Exception, code: int) -> NoReturn:
        """Print an error (and traceback with --debug) and exit."""
        click.echo(f"Error: {error}", err=True)
        if self.debug:
            click.echo(traceback.format_exc(), err=True)
        sys.exit(code)

    def abort_on(self, error: TransferError) -> NoReturn:
        """Exit with the code matching an error of the taxonomy."""
        self.abort(error, exit_code_for_error(error))


def exit_code_for_error(error: TransferError) -> int:
    """Map an error of the taxonomy onto a process exit code."""
    if isinstance(error, InvalidRequestError | LocalFileError):
        return EXIT_INVALID
    if isinstance(error, NotFoundError | SequenceGapError):
        return EXIT_NOT_FOUND
    return EXIT_TRANSPORT


def exit_code_for_results(results: Iterable[TransferResult]) -> int:
    """Pick the process exit code of a batch.

    Transport failures win over local file errors, which win over
    not-found and sequence-gap failures;
    skipped and too-large files do not fail the run.
    """
    outcomes = {result.outcome for result in results}
    if Outcome.TRANSPORT_ERROR in outcomes:
        return EXIT_TRANSPORT
    if Outcome.LOCAL_ERROR in outcomes:
        return EXIT_INVALID
    if outcomes & {Outcome.NOT_FOUND, Outcome.SEQUENCE_GAP}:
        return EXIT_NOT_FOUND
    return EXIT_OK


def report_results(results: Iterable[TransferResult]) -> None:
    """Print the problems of a batch, one line per affected file."""
    for result in results:
        if result.outcome is Outcome.TOO_LARGE:
            click.echo(str(result.error))
        elif result.outcome is Outcome.NOT_FOUND:
            click.echo(str(result.error), err=True)
        elif result.failed:
            click.echo(f"Error: {result.target}: {result.error}", err=True)


def echo_progress(progress: TransferProgress) -> None:
    """Print one line per object transferred."""
    if progress.operation == "put":
        click.echo(f"Writing to key {progress.key}")
    else:
        click.echo(f"Reading from {progress.bucket}/{progress.key}")
