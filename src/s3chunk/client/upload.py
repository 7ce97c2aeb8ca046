"""File upload, whole or in fixed-size chunks.

This module provides:
- expand_local_pattern: local wildcard expansion
- FileUploader: uploads a batch of files and reports one result per file
"""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from pathlib import Path
from typing import TYPE_CHECKING

from s3chunk.client.filters import NewOnlyFilter
from s3chunk.client.store import ACL_HEADER, CONTENT_TYPE_HEADER
from s3chunk.core.chunking import ChunkPlan, check_single_object, plan_chunks
from s3chunk.core.types import (
    InvalidRequestError,
    LocalFileError,
    NotFoundError,
    Outcome,
    SizeLimitError,
    TransferError,
    TransferProgress,
    TransferResult,
)

if TYPE_CHECKING:
    from s3chunk.client.filters import BackupFilter
    from s3chunk.client.store import Headers, ObjectStore
    from s3chunk.core.config import StoreConfig
    from s3chunk.core.types import ProgressCallback

logger = logging.getLogger(__name__)


def expand_local_pattern(pattern: str | Path) -> list[Path]:
    """Expand a wildcard in the file name part of a local path.

    Only the last path component may contain wildcards; matching is not
    recursive and only regular files are returned.

    Args:
        pattern: Path such as "photos/pic*.jpg" or "archive.tar".

    Returns:
        Matching files, sorted by name.

    Raises:
        NotFoundError: If nothing matches.
    """
    path = Path(pattern)
    directory = path.parent
    matches = sorted(p for p in directory.glob(path.name) if p.is_file())
    if not matches:
        raise NotFoundError(path.name)
    return matches


class FileUploader:
    """Uploads local files to a bucket.

    Files are stored under base_key + file name. Without a chunk size each
    file becomes one object; with a chunk size each file becomes the objects
    "<key>.000", "<key>.001", ... covering it exactly.
    """

    def __init__(
        self,
        store: ObjectStore,
        config: StoreConfig,
        progress_callback: ProgressCallback | None = None,
        jobs: int = 1,
    ) -> None:
        """Initialize the uploader.

        Args:
            store: Store to upload to.
            config: Store configuration (object size limit, page size).
            progress_callback: Optional callback invoked before each put.
            jobs: Number of chunks uploaded concurrently.
        """
        if jobs < 1:
            raise InvalidRequestError("jobs must be at least 1")
        self._store = store
        self._config = config
        self._progress_callback = progress_callback
        self._jobs = jobs

    def upload_pattern(
        self,
        bucket: str,
        base_key: str,
        pattern: str | Path,
        chunk_size: int | None = None,
        backup_filter: BackupFilter | None = None,
        new_only: bool = False,
        acl: str | None = None,
    ) -> list[TransferResult]:
        """Upload every local file matching a wildcard pattern.

        Returns:
            One NOT_FOUND result if nothing matches, else one result per file.
        """
        try:
            files = expand_local_pattern(pattern)
        except NotFoundError as e:
            logger.info(str(e))
            return [TransferResult.from_error(str(pattern), e)]
        return self.upload(bucket, base_key, files, chunk_size, backup_filter, new_only, acl)

    def upload(
        self,
        bucket: str,
        base_key: str,
        files: Sequence[Path],
        chunk_size: int | None = None,
        backup_filter: BackupFilter | None = None,
        new_only: bool = False,
        acl: str | None = None,
    ) -> list[TransferResult]:
        """Upload a batch of files.

        A failure on one file is recorded in its result and the batch moves
        on to the next file.

        Args:
            bucket: Destination bucket.
            base_key: Prefix prepended to each file name.
            files: Local files to upload.
            chunk_size: Bytes per chunk, or None to upload whole files.
            backup_filter: Skip files whose archive indicator is clear.
            new_only: Skip keys (or chunk keys) already in the bucket.
            acl: Canned ACL sent with every put.

        Returns:
            One TransferResult per file, in input order.

        Raises:
            InvalidRequestError: If chunk_size is not positive.
        """
        if chunk_size is not None and chunk_size <= 0:
            raise InvalidRequestError(f"Chunk size must be positive, got {chunk_size}")
        if chunk_size is not None and chunk_size > self._config.max_object_size:
            raise InvalidRequestError(
                f"Chunk size {chunk_size} exceeds the maximum object size "
                f"{self._config.max_object_size}"
            )

        new_filter = (
            NewOnlyFilter(self._store, bucket, base_key, self._config.page_size)
            if new_only
            else None
        )

        results: list[TransferResult] = []
        for path in files:
            key = base_key + path.name
            try:
                result = self._upload_one(
                    bucket, key, path, chunk_size, backup_filter, new_filter, acl
                )
            except InvalidRequestError:
                raise
            except SizeLimitError as e:
                logger.info(str(e))
                result = TransferResult.from_error(str(path), e)
            except TransferError as e:
                logger.info(f"Failed to upload {path}: {e}")
                result = TransferResult.from_error(str(path), e)
            except OSError as e:
                error = LocalFileError(str(path), e)
                logger.info(f"Failed to upload {path}: {error}")
                result = TransferResult.from_error(str(path), error)
            results.append(result)
        return results

    def _upload_one(
        self,
        bucket: str,
        key: str,
        path: Path,
        chunk_size: int | None,
        backup_filter: BackupFilter | None,
        new_filter: NewOnlyFilter | None,
        acl: str | None,
    ) -> TransferResult:
        if backup_filter is not None and not backup_filter.include(path):
            logger.debug(f"Skipping {path}: unchanged since last backup")
            return TransferResult(target=str(path), outcome=Outcome.SKIPPED_UNCHANGED)

        size = path.stat().st_size

        if chunk_size is None:
            if new_filter is not None and new_filter.exists(key):
                logger.debug(f"Skipping {path}: {key} already exists")
                return TransferResult(target=str(path), outcome=Outcome.SKIPPED_EXISTING)
            check_single_object(path.name, size, self._config.max_object_size)
            self._put_whole(bucket, key, path, size, acl)
            keys = [key]
        else:
            plan = plan_chunks(size, chunk_size, path.name)
            if new_filter is not None:
                existing = new_filter.existing_keys
                pending = [span for span in plan if span.key(key) not in existing]
                if not pending:
                    logger.debug(f"Skipping {path}: all {len(plan)} chunks already exist")
                    return TransferResult(target=str(path), outcome=Outcome.SKIPPED_EXISTING)
                if len(pending) < len(plan):
                    logger.info(
                        f"Resuming {key}: {len(plan) - len(pending)}/{len(plan)} "
                        "chunks already uploaded"
                    )
            else:
                pending = plan
            self._put_chunks(bucket, key, path, pending, _headers(acl, None))
            keys = [span.key(key) for span in pending]

        if backup_filter is not None:
            backup_filter.mark_backed_up(path)

        logger.info(f"Uploaded {path} to {bucket}/{key} ({len(keys)} objects, {size} bytes)")
        return TransferResult(target=str(path), outcome=Outcome.UPLOADED, keys=keys, size=size)

    def _report(self, bucket: str, key: str, size: int) -> None:
        if self._progress_callback:
            self._progress_callback(TransferProgress(
                bucket=bucket,
                key=key,
                operation="put",
                size=size,
            ))

    def _put_whole(self, bucket: str, key: str, path: Path, size: int, acl: str | None) -> None:
        content_type, _ = mimetypes.guess_type(path.name)
        self._report(bucket, key, size)
        with open(path, "rb") as f:
            self._store.put(bucket, key, f, _headers(acl, content_type))

    def _put_chunks(
        self,
        bucket: str,
        key: str,
        path: Path,
        plan: ChunkPlan,
        headers: Headers,
    ) -> None:
        if self._jobs == 1 or len(plan) == 1:
            with open(path, "rb") as f:
                for span in plan:
                    chunk_key = span.key(key)
                    self._report(bucket, chunk_key, span.length)
                    self._store.put(bucket, chunk_key, f, headers, span.offset, span.length)
            return

        # Each chunk key carries its own sequence number, so completion order
        # does not matter; every worker reads through its own file handle.
        def put_chunk(chunk_key: str, offset: int, length: int) -> None:
            self._report(bucket, chunk_key, length)
            with open(path, "rb") as f:
                self._store.put(bucket, chunk_key, f, headers, offset, length)

        with ThreadPoolExecutor(max_workers=self._jobs) as executor:
            futures = [
                executor.submit(put_chunk, span.key(key), span.offset, span.length)
                for span in plan
            ]
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            for future in not_done:
                future.cancel()
            for future in futures:
                if future in done:
                    future.result()


def _headers(acl: str | None, content_type: str | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    if acl:
        headers[ACL_HEADER] = acl
    if content_type:
        headers[CONTENT_TYPE_HEADER] = content_type
    return headers
