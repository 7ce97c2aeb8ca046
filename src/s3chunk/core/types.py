"""Shared types for s3chunk.

This module provides:
- TransferError and its subclasses: the failure taxonomy
- ListEntry, ListPage: remote catalog metadata
- ObjectKey: (bucket, key) address parsed from "bucket/key" strings
- Outcome, TransferResult: tagged per-file results of an operation
- TransferProgress: progress notification for the CLI
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TransferError(Exception):
    """Base exception for transfer errors."""


class NotFoundError(TransferError):
    """No local file or remote object matched a target."""

    def __init__(self, what: str) -> None:
        self.what = what
        super().__init__(f"Not found: {what}")


class SequenceGapError(TransferError):
    """A chunk was missing, duplicated or out of order during assembly.

    Attributes:
        expected: Sequence number the assembler was waiting for.
        found: Key that was seen in its place (None if the list ran out).
    """

    def __init__(self, expected: int, found: str | None = None) -> None:
        self.expected = expected
        self.found = found
        message = f"Missing or out-of-order chunk: expected {expected}"
        if found is not None:
            message += f", found {found}"
        super().__init__(message)


class SizeLimitError(TransferError):
    """File cannot be stored as planned; the file is skipped."""

    def __init__(self, path: str, size: int, limit: int, message: str | None = None) -> None:
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(
            message
            or f"{path} is too big ({size} bytes); maximum object size is {limit} bytes. "
            "Use --big to upload it in chunks."
        )


class ChunkCountError(SizeLimitError):
    """Chunk plan would need more sequence numbers than the key format holds."""


class TransportError(TransferError):
    """Network or store failure reported by the store adapter."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class InvalidRequestError(TransferError):
    """Operation was called with a combination of arguments it cannot serve."""


class LocalFileError(TransferError):
    """A local file could not be read or written."""

    def __init__(self, path: str, error: OSError) -> None:
        self.path = path
        super().__init__(f"{path}: {error.strerror or error}")


@dataclass(frozen=True)
class ListEntry:
    """Metadata of one remote object."""

    key: str
    size: int
    last_modified: datetime


@dataclass
class ListPage:
    """One bounded page returned by a listing call."""

    entries: list[ListEntry]
    is_truncated: bool


@dataclass(frozen=True)
class ObjectKey:
    """Address of an object: opaque bucket plus opaque key."""

    bucket: str
    key: str = ""

    @classmethod
    def parse(cls, resource: str) -> ObjectKey:
        """Split "bucket/key" at the first slash.

        Args:
            resource: String such as "mybucket" or "mybucket/dir/name".

        Returns:
            ObjectKey with an empty key when there is no slash.
        """
        bucket, _, key = resource.partition("/")
        return cls(bucket=bucket, key=key)

    def __str__(self) -> str:
        return f"{self.bucket}/{self.key}" if self.key else self.bucket


class Outcome(str, Enum):
    """Tagged outcome of one file-level transfer."""

    UPLOADED = "uploaded"
    SKIPPED_EXISTING = "skipped-existing"
    SKIPPED_UNCHANGED = "skipped-unchanged"
    TOO_LARGE = "too-large"
    DOWNLOADED = "downloaded"
    NOT_FOUND = "not-found"
    SEQUENCE_GAP = "sequence-gap"
    TRANSPORT_ERROR = "transport-error"
    LOCAL_ERROR = "local-error"


_FAILURES = {
    Outcome.NOT_FOUND,
    Outcome.SEQUENCE_GAP,
    Outcome.TRANSPORT_ERROR,
    Outcome.LOCAL_ERROR,
}


@dataclass
class TransferResult:
    """Result of transferring one local file or one remote object group.

    Attributes:
        target: Local path (upload) or remote key/base key (download).
        outcome: What happened.
        keys: Remote keys written or read, in order.
        size: Bytes transferred.
        error: The error behind a non-success outcome.
    """

    target: str
    outcome: Outcome
    keys: list[str] = field(default_factory=list)
    size: int = 0
    error: TransferError | None = None

    @property
    def failed(self) -> bool:
        """True when the outcome should make the run exit non-zero."""
        return self.outcome in _FAILURES

    @classmethod
    def from_error(cls, target: str, error: TransferError) -> TransferResult:
        """Map an exception from the taxonomy onto its tagged outcome."""
        if isinstance(error, NotFoundError):
            outcome = Outcome.NOT_FOUND
        elif isinstance(error, SequenceGapError):
            outcome = Outcome.SEQUENCE_GAP
        elif isinstance(error, SizeLimitError):
            outcome = Outcome.TOO_LARGE
        elif isinstance(error, LocalFileError):
            outcome = Outcome.LOCAL_ERROR
        else:
            outcome = Outcome.TRANSPORT_ERROR
        return cls(target=target, outcome=outcome, error=error)


@dataclass
class TransferProgress:
    """Progress notification for one object put or get."""

    bucket: str
    key: str
    operation: str  # "put" or "get"
    size: int


# Type alias for progress callback
ProgressCallback = Callable[[TransferProgress], None]
