"""Object store abstraction.

This module provides:
- ObjectStore: abstract get/put/list contract used by the transfer code
- StoredObject: streaming body plus metadata returned by get()
- LocalFSStore: directory-backed store for offline use and testing
- S3Store: S3-compatible store (AWS, MinIO, OVH, ...) on top of boto3
- create_store: factory selecting an adapter from StoreConfig

Adapters translate backend failures into NotFoundError and TransportError
once, here; callers propagate them unmodified.
"""

from __future__ import annotations

import contextlib
import os
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO
from urllib.parse import quote, unquote

from s3chunk.core.chunking import copy_stream, iter_range
from s3chunk.core.types import (
    InvalidRequestError,
    ListEntry,
    ListPage,
    NotFoundError,
    TransportError,
)

if TYPE_CHECKING:
    from typing import Any

    from s3chunk.core.config import StoreConfig

CONTENT_TYPE_HEADER = "Content-Type"
ACL_HEADER = "x-amz-acl"

Headers = Mapping[str, str]


@dataclass
class StoredObject:
    """An object returned by ObjectStore.get().

    The body is a stream and must be closed after use; StoredObject is a
    context manager that does so.
    """

    key: str
    body: BinaryIO
    size: int
    content_type: str | None = None
    last_modified: datetime | None = None

    def read(self, amt: int = -1) -> bytes:
        """Read up to `amt` bytes from the body (all remaining if negative)."""
        return self.body.read(amt) if amt >= 0 else self.body.read()

    def close(self) -> None:
        """Close the body stream."""
        self.body.close()

    def __enter__(self) -> StoredObject:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()


class ObjectStore(ABC):
    """Abstract interface for a key-addressed object store.

    Every call blocks until the store answers.
    """

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of the store."""

    @abstractmethod
    def put(
        self,
        bucket: str,
        key: str,
        source: BinaryIO,
        headers: Headers | None = None,
        offset: int | None = None,
        length: int | None = None,
    ) -> None:
        """Store an object.

        Args:
            bucket: Container name.
            key: Object key.
            source: Seekable binary stream to read the object from.
            headers: Optional "Content-Type" and "x-amz-acl" headers.
            offset: Start of the byte range of `source` to store.
            length: Length of the byte range; requires `offset`.
        """

    @abstractmethod
    def get(self, bucket: str, key: str, headers: Headers | None = None) -> StoredObject:
        """Open an object for streaming.

        Raises:
            NotFoundError: If the object does not exist.
        """

    @abstractmethod
    def list_bucket(
        self,
        bucket: str,
        prefix: str = "",
        marker: str = "",
        max_keys: int = 1000,
        delimiter: str | None = None,
    ) -> ListPage:
        """Return one page of keys starting with `prefix` that sort after `marker`."""

    @abstractmethod
    def list_buckets(self) -> list[str]:
        """Return the names of all buckets."""


class LocalFSStore(ObjectStore):
    """Directory-backed object store.

    Each bucket is a subdirectory of the root; each object is one file whose
    name is the URL-quoted key, so keys containing slashes stay flat and
    list in key order.
    """

    def __init__(self, base_path: Path | str) -> None:
        """Initialize local storage.

        Args:
            base_path: Root directory holding one subdirectory per bucket.
        """
        self._base_path = Path(base_path).expanduser().resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local filesystem: {self._base_path}"

    def _bucket_path(self, bucket: str) -> Path:
        if not bucket or "/" in bucket or bucket.startswith("."):
            raise InvalidRequestError(f"Invalid bucket name: {bucket!r}")
        return self._base_path / bucket

    def _object_path(self, bucket: str, key: str) -> Path:
        if not key:
            raise InvalidRequestError("Object key must not be empty")
        return self._bucket_path(bucket) / quote(key, safe="")

    def put(
        self,
        bucket: str,
        key: str,
        source: BinaryIO,
        headers: Headers | None = None,
        offset: int | None = None,
        length: int | None = None,
    ) -> None:
        """Store an object, writing through a temporary file."""
        path = self._object_path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Partial writes live outside the bucket so listings never see them
        tmp_dir = self._base_path / ".tmp"
        tmp_dir.mkdir(exist_ok=True)
        tmp_path = tmp_dir / f"{bucket}.{path.name}.{uuid.uuid4().hex}"
        try:
            with open(tmp_path, "wb") as f:
                if offset is None:
                    copy_stream(source, f)
                else:
                    for data in iter_range(source, offset, length or 0):
                        f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise TransportError(f"Cannot write {bucket}/{key}: {e}") from e

    def get(self, bucket: str, key: str, headers: Headers | None = None) -> StoredObject:
        """Open an object file for reading."""
        path = self._object_path(bucket, key)
        try:
            stat = path.stat()
            body = open(path, "rb")  # noqa: SIM115 - closed by StoredObject
        except FileNotFoundError as e:
            raise NotFoundError(f"{bucket}/{key}") from e
        except OSError as e:
            raise TransportError(f"Cannot read {bucket}/{key}: {e}") from e
        return StoredObject(
            key=key,
            body=body,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
        )

    def list_bucket(
        self,
        bucket: str,
        prefix: str = "",
        marker: str = "",
        max_keys: int = 1000,
        delimiter: str | None = None,
    ) -> ListPage:
        """Return one page of keys in lexicographic order."""
        if delimiter is not None:
            raise InvalidRequestError("Local store does not support delimiters")

        # Buckets are created by their first put; until then they are empty
        bucket_path = self._bucket_path(bucket)
        if not bucket_path.is_dir():
            return ListPage(entries=[], is_truncated=False)

        keys = sorted(
            key
            for key in (unquote(p.name) for p in bucket_path.iterdir())
            if key.startswith(prefix) and key > marker
        )
        entries = []
        for key in keys[:max_keys]:
            stat = (bucket_path / quote(key, safe="")).stat()
            entries.append(ListEntry(
                key=key,
                size=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
            ))
        return ListPage(entries=entries, is_truncated=len(keys) > max_keys)

    def list_buckets(self) -> list[str]:
        """Return the bucket directories under the root."""
        return sorted(
            p.name for p in self._base_path.iterdir() if p.is_dir() and not p.name.startswith(".")
        )


class _RangeReader:
    """Read-only, seekable view of a byte range of a seekable file.

    Lets the S3 client read (and rewind for checksums) one chunk of a large
    file without copying it.
    """

    def __init__(self, source: BinaryIO, offset: int, length: int) -> None:
        self._source = source
        self._offset = offset
        self._length = length
        self._position = 0

    def __len__(self) -> int:
        return self._length

    def seekable(self) -> bool:
        return True

    def readable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._position

    def seek(self, position: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_CUR:
            position += self._position
        elif whence == os.SEEK_END:
            position += self._length
        self._position = max(0, min(position, self._length))
        return self._position

    def read(self, size: int = -1) -> bytes:
        remaining = self._length - self._position
        if size is None or size < 0 or size > remaining:
            size = remaining
        if size <= 0:
            return b""
        self._source.seek(self._offset + self._position)
        data = self._source.read(size)
        self._position += len(data)
        return data


@contextlib.contextmanager
def _translate_errors(bucket: str, key: str | None = None) -> Iterator[None]:
    """Map botocore exceptions onto NotFoundError / TransportError."""
    from botocore.exceptions import BotoCoreError, ClientError

    try:
        yield
    except ClientError as e:
        error = e.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if code in ("NoSuchKey", "NotFound", "404"):
            raise NotFoundError(f"{bucket}/{key}" if key else bucket) from e
        if code == "NoSuchBucket":
            raise NotFoundError(bucket) from e
        raise TransportError(f"{code}\t{error.get('Message', e)}", status, code) from e
    except BotoCoreError as e:
        raise TransportError(str(e)) from e


class _S3Body:
    """Streaming body whose read errors surface as TransportError."""

    def __init__(self, body: Any, bucket: str, key: str) -> None:
        self._body = body
        self._bucket = bucket
        self._key = key

    def read(self, amt: int | None = None) -> bytes:
        with _translate_errors(self._bucket, self._key):
            data: bytes = self._body.read(amt)
            return data

    def close(self) -> None:
        self._body.close()


class S3Store(ObjectStore):
    """S3-compatible object store (AWS, OVH, MinIO, etc.)."""

    def __init__(self, config: StoreConfig, client: Any | None = None) -> None:
        """Initialize S3 storage.

        Args:
            config: Store configuration (endpoint, region, profile, timeouts).
            client: Pre-built boto3 S3 client; built from `config` when None.
        """
        self._config = config
        if client is None:
            import boto3
            from botocore.config import Config as BotoConfig

            session = boto3.session.Session(profile_name=config.profile)
            client = session.client(
                "s3",
                endpoint_url=config.endpoint_url,
                region_name=config.region,
                verify=config.verify_ssl,
                config=BotoConfig(
                    connect_timeout=config.timeout,
                    read_timeout=config.timeout,
                    retries={"max_attempts": 0},
                ),
            )
        self._client: Any = client

    @property
    def location(self) -> str:
        """Return the S3 endpoint location."""
        if self._config.endpoint_url:
            return f"S3: {self._config.endpoint_url}"
        return "S3: AWS"

    @staticmethod
    def _extra_args(headers: Headers | None) -> dict[str, str]:
        args: dict[str, str] = {}
        if headers:
            if headers.get(CONTENT_TYPE_HEADER):
                args["ContentType"] = headers[CONTENT_TYPE_HEADER]
            if headers.get(ACL_HEADER):
                args["ACL"] = headers[ACL_HEADER]
        return args

    def put(
        self,
        bucket: str,
        key: str,
        source: BinaryIO,
        headers: Headers | None = None,
        offset: int | None = None,
        length: int | None = None,
    ) -> None:
        """Store an object, optionally from a byte range of `source`."""
        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key, **self._extra_args(headers)}
        if offset is None:
            kwargs["Body"] = source
        else:
            kwargs["Body"] = _RangeReader(source, offset, length or 0)
            kwargs["ContentLength"] = length or 0
        with _translate_errors(bucket, key):
            self._client.put_object(**kwargs)

    def get(self, bucket: str, key: str, headers: Headers | None = None) -> StoredObject:
        """Open an object as a streaming body."""
        with _translate_errors(bucket, key):
            response = self._client.get_object(Bucket=bucket, Key=key)
        return StoredObject(
            key=key,
            body=_S3Body(response["Body"], bucket, key),  # type: ignore[arg-type]
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
        )

    def list_bucket(
        self,
        bucket: str,
        prefix: str = "",
        marker: str = "",
        max_keys: int = 1000,
        delimiter: str | None = None,
    ) -> ListPage:
        """Return one page from a marker-based ListObjects call."""
        kwargs: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "MaxKeys": max_keys}
        if marker:
            kwargs["Marker"] = marker
        if delimiter is not None:
            kwargs["Delimiter"] = delimiter
        with _translate_errors(bucket):
            response = self._client.list_objects(**kwargs)
        entries = [
            ListEntry(key=c["Key"], size=c["Size"], last_modified=c["LastModified"])
            for c in response.get("Contents", [])
        ]
        return ListPage(entries=entries, is_truncated=bool(response.get("IsTruncated")))

    def list_buckets(self) -> list[str]:
        """Return the names of all buckets owned by the caller."""
        with _translate_errors(""):
            response = self._client.list_buckets()
        return [b["Name"] for b in response.get("Buckets", [])]


def create_store(config: StoreConfig) -> ObjectStore:
    """Factory function to create a store from configuration.

    Args:
        config: Store configuration.

    Returns:
        Configured ObjectStore instance.

    Raises:
        ValueError: If the local backend has no root directory.
    """
    if config.backend == "local":
        if not config.local_root:
            raise ValueError("Local backend requires 'local_root' configuration")
        return LocalFSStore(config.local_root)
    return S3Store(config)
