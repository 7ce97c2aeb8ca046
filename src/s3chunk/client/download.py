"""File download and reassembly of chunked objects.

This module provides:
- AssemblyState: states of a chunked download
- ChunkAssembler: writes chunks to a sink in strict sequence order
- FileDownloader: single, wildcard and chunked downloads
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, NoReturn

from s3chunk.client.listing import PaginatedLister
from s3chunk.core.chunking import chunk_key, chunk_key_pattern, copy_stream, sort_chunk_keys
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

if TYPE_CHECKING:
    from s3chunk.client.store import ObjectStore
    from s3chunk.core.config import StoreConfig
    from s3chunk.core.types import ProgressCallback

logger = logging.getLogger(__name__)

WILDCARD = "*"


class AssemblyState(Enum):
    """State of a ChunkAssembler."""

    IDLE = auto()
    EXPECTING = auto()
    COMPLETE = auto()
    FAILED = auto()


class ChunkAssembler:
    """Rebuilds one file from its chunk objects.

    State machine:
        IDLE -> EXPECTING(0) on start.
        EXPECTING(n) -> EXPECTING(n + 1) after chunk n is written in full.
        EXPECTING(n) -> FAILED when the next key is not "<base>.<n:03>";
            nothing of that key is written.
        EXPECTING(n >= 1) -> COMPLETE when the keys run out.
        EXPECTING(0) -> FAILED (not found) when there were no keys.

    A failed assembly leaves whatever was already written in the sink.
    """

    def __init__(self, base_key: str, sink: BinaryIO) -> None:
        """Initialize the assembler.

        Args:
            base_key: Key shared by all chunks, without the ".NNN" suffix.
            sink: Writable binary stream receiving the file content.
        """
        self._base_key = base_key
        self._sink = sink
        self._state = AssemblyState.IDLE
        self._expected = 0
        self._bytes_written = 0

    @property
    def state(self) -> AssemblyState:
        """Current state."""
        return self._state

    @property
    def expected(self) -> int:
        """Sequence number of the next chunk to write."""
        return self._expected

    @property
    def bytes_written(self) -> int:
        """Bytes written to the sink so far."""
        return self._bytes_written

    def start(self) -> None:
        """Move from IDLE to EXPECTING(0)."""
        if self._state is not AssemblyState.IDLE:
            raise RuntimeError(f"Cannot start assembler in state {self._state.name}")
        self._state = AssemblyState.EXPECTING
        self._expected = 0

    def _fail(self, error: TransferError) -> NoReturn:
        self._state = AssemblyState.FAILED
        logger.debug(f"Assembly of {self._base_key} failed: {error}")
        raise error

    def check(self, key: str, sequence: int | None = None) -> None:
        """Validate that `key` carries the expected sequence number.

        Raises:
            SequenceGapError: If the key is missing, duplicated or out of order.
        """
        if sequence is None:
            sequence = self._expected
        if key != chunk_key(self._base_key, sequence):
            self._fail(SequenceGapError(sequence, key))

    def write(self, source: BinaryIO) -> int:
        """Append one whole chunk to the sink and expect the next one.

        Returns:
            Number of bytes written.
        """
        if self._state is not AssemblyState.EXPECTING:
            raise RuntimeError(f"Cannot write chunk in state {self._state.name}")
        written = copy_stream(source, self._sink)
        self._advance(written)
        return written

    def _advance(self, written: int) -> None:
        self._bytes_written += written
        self._expected += 1
        logger.debug(f"Wrote chunk {self._expected - 1} of {self._base_key} ({written} bytes)")

    def finish(self) -> None:
        """Complete the assembly once every key was consumed.

        Raises:
            NotFoundError: If no chunk was written.
        """
        if self._state is not AssemblyState.EXPECTING or self._expected == 0:
            self._fail(NotFoundError(self._base_key))
        self._state = AssemblyState.COMPLETE

    def assemble(
        self,
        store: ObjectStore,
        bucket: str,
        keys: Sequence[str],
        jobs: int = 1,
        progress_callback: ProgressCallback | None = None,
    ) -> int:
        """Fetch and write every chunk in ascending sequence order.

        Args:
            store: Store holding the chunks.
            bucket: Bucket holding the chunks.
            keys: Candidate chunk keys, in any order.
            jobs: Number of chunks fetched concurrently.
            progress_callback: Optional callback invoked after each get.

        Returns:
            Total bytes written.

        Raises:
            NotFoundError: If there are no keys.
            SequenceGapError: On a missing, duplicated or out-of-order chunk.
            TransportError: If the store fails.
        """
        self.start()
        ordered = sort_chunk_keys(keys)
        if not ordered:
            self._fail(NotFoundError(self._base_key))

        try:
            if jobs <= 1:
                for key in ordered:
                    self.check(key)
                    with store.get(bucket, key) as obj:
                        _report(progress_callback, bucket, key, obj.size)
                        self.write(obj)  # type: ignore[arg-type]
            else:
                self._assemble_concurrently(store, bucket, ordered, jobs, progress_callback)
        except (TransferError, OSError):
            self._state = AssemblyState.FAILED
            raise

        self.finish()
        return self._bytes_written

    def _assemble_concurrently(
        self,
        store: ObjectStore,
        bucket: str,
        ordered: list[str],
        jobs: int,
        progress_callback: ProgressCallback | None,
    ) -> None:
        # Chunks that arrive early wait in `arrived` until every lower
        # sequence number is written. At most 2 * jobs chunks are held in
        # memory, fetched or in flight.
        window = 2 * jobs
        arrived: dict[int, bytes] = {}
        in_flight: dict[Future[bytes], int] = {}
        keys = iter(ordered)
        scheduled = 0
        gap: SequenceGapError | None = None

        def fetch(key: str) -> bytes:
            with store.get(bucket, key) as obj:
                _report(progress_callback, bucket, key, obj.size)
                return obj.read()

        with ThreadPoolExecutor(max_workers=jobs) as executor:
            try:
                while True:
                    while gap is None and len(in_flight) + len(arrived) < window:
                        key = next(keys, None)
                        if key is None:
                            break
                        if key != chunk_key(self._base_key, scheduled):
                            gap = SequenceGapError(scheduled, key)
                            break
                        in_flight[executor.submit(fetch, key)] = scheduled
                        scheduled += 1

                    if not in_flight:
                        break

                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        arrived[in_flight.pop(future)] = future.result()

                    while self._expected in arrived:
                        data = arrived.pop(self._expected)
                        self._sink.write(data)
                        self._advance(len(data))
            except BaseException:
                for future in in_flight:
                    future.cancel()
                raise

        if gap is not None:
            self._fail(gap)


def _report(
    progress_callback: ProgressCallback | None,
    bucket: str,
    key: str,
    size: int,
) -> None:
    if progress_callback:
        progress_callback(TransferProgress(bucket=bucket, key=key, operation="get", size=size))


def default_filename(key: str) -> str:
    """Return the part of a key after its last slash."""
    return key.rsplit("/", 1)[-1]


class FileDownloader:
    """Downloads objects, wildcard groups of objects, or chunked files."""

    def __init__(
        self,
        store: ObjectStore,
        config: StoreConfig,
        progress_callback: ProgressCallback | None = None,
        jobs: int = 1,
    ) -> None:
        """Initialize the downloader.

        Args:
            store: Store to download from.
            config: Store configuration (listing page size).
            progress_callback: Optional callback invoked after each get.
            jobs: Number of chunks fetched concurrently for chunked downloads.
        """
        if jobs < 1:
            raise InvalidRequestError("jobs must be at least 1")
        self._store = store
        self._config = config
        self._progress_callback = progress_callback
        self._jobs = jobs

    def download(
        self,
        bucket: str,
        key: str,
        dest: Path | str | None = None,
        chunked: bool = False,
    ) -> list[TransferResult]:
        """Download one key, every key matching "prefix*", or a chunked file.

        Args:
            bucket: Source bucket.
            key: Object key, "prefix*" wildcard, or chunked base key.
            dest: Local filename; defaults to the key after its last slash.
            chunked: Reassemble "<key>.000", "<key>.001", ... into one file.

        Returns:
            One TransferResult per local file written (or attempted).

        Raises:
            InvalidRequestError: For a wildcard in chunked mode, or a wildcard
                matching several keys with an explicit destination.
        """
        if chunked:
            if key.endswith(WILDCARD):
                raise InvalidRequestError("Wildcards are not supported for chunked downloads")
            return [self.download_chunked(bucket, key, dest)]

        if not key.endswith(WILDCARD):
            return [self._download_one(bucket, key, dest)]

        prefix = key[: -len(WILDCARD)]
        keys = sorted(e.key for e in PaginatedLister(
            self._store, bucket, prefix, self._config.page_size
        ))
        if not keys:
            error = NotFoundError(key)
            logger.info(str(error))
            return [TransferResult.from_error(key, error)]
        if len(keys) > 1 and dest is not None:
            raise InvalidRequestError(
                f"{key} matches {len(keys)} objects; a destination filename needs exactly one"
            )

        results = []
        for matched in keys:
            if not default_filename(matched) and dest is None:
                logger.warning(f"Skipping {matched}: key has no file name")
                continue
            results.append(self._download_one(bucket, matched, dest))
        return results

    def _download_one(self, bucket: str, key: str, dest: Path | str | None) -> TransferResult:
        """Single-object download: one fetch, no sequence validation."""
        path = Path(dest) if dest is not None else Path(default_filename(key))
        try:
            with self._store.get(bucket, key) as obj:
                _report(self._progress_callback, bucket, key, obj.size)
                with open(path, "wb") as f:
                    size = copy_stream(obj, f)  # type: ignore[arg-type]
        except TransferError as e:
            logger.info(f"Failed to download {bucket}/{key}: {e}")
            return TransferResult.from_error(key, e)
        except OSError as e:
            error = LocalFileError(str(path), e)
            logger.info(f"Failed to download {bucket}/{key}: {error}")
            return TransferResult.from_error(key, error)

        logger.info(f"Downloaded {bucket}/{key} to {path} ({size} bytes)")
        return TransferResult(target=key, outcome=Outcome.DOWNLOADED, keys=[key], size=size)

    def find_chunks(self, bucket: str, base_key: str) -> list[str]:
        """List the candidate chunk keys of a base key, in numeric order."""
        pattern = chunk_key_pattern(base_key)
        lister = PaginatedLister(self._store, bucket, base_key + ".", self._config.page_size)
        return sort_chunk_keys(e.key for e in lister if pattern.match(e.key))

    def download_chunked(
        self,
        bucket: str,
        base_key: str,
        dest: Path | str | None = None,
    ) -> TransferResult:
        """Reassemble a chunked upload into one local file.

        On a sequence gap the partially written file is left in place.
        """
        try:
            keys = self.find_chunks(bucket, base_key)
        except TransferError as e:
            logger.info(f"Failed to list chunks of {bucket}/{base_key}: {e}")
            return TransferResult.from_error(base_key, e)

        if not keys:
            error = NotFoundError(base_key)
            logger.info(str(error))
            return TransferResult.from_error(base_key, error)

        path = Path(dest) if dest is not None else Path(default_filename(base_key))
        assembler: ChunkAssembler | None = None
        try:
            with open(path, "wb") as f:
                assembler = ChunkAssembler(base_key, f)
                size = assembler.assemble(
                    self._store, bucket, keys, self._jobs, self._progress_callback
                )
        except (TransferError, OSError) as e:
            error = e if isinstance(e, TransferError) else LocalFileError(str(path), e)
            logger.info(f"Failed to download {bucket}/{base_key}: {error}")
            result = TransferResult.from_error(base_key, error)
            if assembler is not None:
                result.size = assembler.bytes_written
                result.keys = keys[: assembler.expected]
            return result

        logger.info(f"Downloaded {len(keys)} chunks of {bucket}/{base_key} to {path} ({size} bytes)")
        return TransferResult(target=base_key, outcome=Outcome.DOWNLOADED, keys=keys, size=size)
