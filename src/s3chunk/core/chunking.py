"""Fixed-size chunking for objects larger than the store's object limit.

This module provides:
- plan_chunks: ordered byte ranges covering a file exactly once
- chunk_key / chunk_suffix: the "<base>.<NNN>" key format
- chunk_key_pattern / sort_chunk_keys: catalog filtering and numeric ordering
- check_single_object: size check for the non-chunked path
- iter_range / copy_stream: bounded-buffer streaming helpers

Chunk keys carry the sequence number zero-padded to CHUNK_SUFFIX_WIDTH
digits. Readers accept 3 to 5 digits but assembly re-validates every key
against the padded form, so a plan may never hold more than MAX_CHUNKS
chunks.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import BinaryIO

from s3chunk.core.types import ChunkCountError, InvalidRequestError, SizeLimitError

DEFAULT_CHUNK_MEGABYTES = 10.0
DEFAULT_CHUNK_SIZE = int(DEFAULT_CHUNK_MEGABYTES * 1024 * 1024)  # 10 MB

CHUNK_SUFFIX_WIDTH = 3
MAX_CHUNKS = 10**CHUNK_SUFFIX_WIDTH

# Buffer used when streaming between files and store bodies
COPY_BUFFER_SIZE = 64 * 1024

_SUFFIX_RE = re.compile(r"\.(\d+)$")


@dataclass(frozen=True)
class ChunkSpan:
    """One entry of a chunk plan."""

    sequence: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        """Offset one past the last byte of this chunk."""
        return self.offset + self.length

    def key(self, base_key: str) -> str:
        """Return the object key this chunk is stored under."""
        return chunk_key(base_key, self.sequence)


ChunkPlan = list[ChunkSpan]


def megabytes_to_bytes(megabytes: float) -> int:
    """Convert a (possibly fractional) megabyte count to a chunk size.

    Args:
        megabytes: Size in MB, e.g. 0.1 for roughly 100 KB.

    Returns:
        Size in bytes.

    Raises:
        InvalidRequestError: If the size is not finite or not strictly positive.
    """
    if not math.isfinite(megabytes):
        raise InvalidRequestError(f"Chunk size must be a finite number, got {megabytes} MB")
    size = int(megabytes * 1024 * 1024)
    if size <= 0:
        raise InvalidRequestError(f"Chunk size must be positive, got {megabytes} MB")
    return size


def chunk_key(base_key: str, sequence: int) -> str:
    """Format the key of chunk `sequence` under `base_key`."""
    return f"{base_key}.{sequence:0{CHUNK_SUFFIX_WIDTH}d}"


def chunk_suffix(key: str) -> int:
    """Return the integer value of a chunk key's numeric suffix.

    Raises:
        ValueError: If the key has no ".<digits>" suffix.
    """
    match = _SUFFIX_RE.search(key)
    if match is None:
        raise ValueError(f"Not a chunk key: {key}")
    return int(match.group(1))


def chunk_key_pattern(base_key: str) -> re.Pattern[str]:
    """Compile the pattern candidate chunk keys of `base_key` must match."""
    return re.compile(rf"^{re.escape(base_key)}\.\d{{3,5}}$")


def sort_chunk_keys(keys: Iterable[str]) -> list[str]:
    """Sort chunk keys by the integer value of their suffix.

    Listings come back in lexicographic order, which puts "base.10"
    before "base.2"; assembly needs numeric order.
    """
    return sorted(keys, key=chunk_suffix)


def plan_chunks(file_length: int, chunk_size: int, name: str = "file") -> ChunkPlan:
    """Compute the ordered chunk layout of a file.

    Every chunk except the last is exactly `chunk_size` bytes. A zero-length
    file gets a single zero-length chunk so that it still exists remotely
    and downloads back as an empty file.

    Args:
        file_length: Size of the file in bytes.
        chunk_size: Bytes per chunk, strictly positive.
        name: File name used in error messages.

    Returns:
        List of ChunkSpan with sequence numbers 0, 1, 2, ...

    Raises:
        InvalidRequestError: If chunk_size is not positive or file_length is negative.
        ChunkCountError: If the plan would need more than MAX_CHUNKS chunks.
    """
    if chunk_size <= 0:
        raise InvalidRequestError(f"Chunk size must be positive, got {chunk_size}")
    if file_length < 0:
        raise InvalidRequestError(f"File length must not be negative, got {file_length}")

    if file_length == 0:
        return [ChunkSpan(sequence=0, offset=0, length=0)]

    count = -(-file_length // chunk_size)
    if count > MAX_CHUNKS:
        raise ChunkCountError(
            name,
            file_length,
            chunk_size * MAX_CHUNKS,
            message=(
                f"{name} would need {count} chunks of {chunk_size} bytes; "
                f"at most {MAX_CHUNKS} are supported. Use a larger chunk size."
            ),
        )

    plan: ChunkPlan = []
    offset = 0
    while offset < file_length:
        length = min(chunk_size, file_length - offset)
        plan.append(ChunkSpan(sequence=len(plan), offset=offset, length=length))
        offset += length
    return plan


def check_single_object(name: str, file_length: int, max_object_size: int) -> None:
    """Reject files too large to be stored as one object.

    Raises:
        SizeLimitError: If file_length exceeds max_object_size.
    """
    if file_length > max_object_size:
        raise SizeLimitError(name, file_length, max_object_size)


def iter_range(
    source: BinaryIO,
    offset: int,
    length: int,
    buffer_size: int = COPY_BUFFER_SIZE,
) -> Iterator[bytes]:
    """Yield the bytes of [offset, offset + length) in bounded pieces.

    Stops early if the source ends before `length` bytes were read.
    """
    source.seek(offset)
    remaining = length
    while remaining > 0:
        data = source.read(min(buffer_size, remaining))
        if not data:
            return
        remaining -= len(data)
        yield data


def copy_stream(source: BinaryIO, sink: BinaryIO, buffer_size: int = COPY_BUFFER_SIZE) -> int:
    """Copy a readable stream into a writable one.

    Returns:
        Number of bytes copied.
    """
    copied = 0
    while True:
        data = source.read(buffer_size)
        if not data:
            return copied
        sink.write(data)
        copied += len(data)
