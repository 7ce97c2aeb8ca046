"""Pre-upload inclusion policies.

This module provides:
- ArchiveIndicator: interface of a per-file "changed since backup" flag
- WindowsArchiveAttribute: the real archive attribute on Windows
- default_archive_indicator: archive attribute or SQLite emulation
- BackupFilter: include only files whose archive indicator is set
- NewOnlyFilter: drop candidate keys that already exist remotely
"""

from __future__ import annotations

import logging
import os
import stat
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from s3chunk.client.index import BackupIndex
from s3chunk.client.listing import PaginatedLister
from s3chunk.core.config import DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from s3chunk.client.store import ObjectStore

logger = logging.getLogger(__name__)

BACKUP_INDEX_NAME = "backup.db"


class ArchiveIndicator(Protocol):
    """Per-file flag raised whenever the file changes."""

    def is_set(self, path: Path) -> bool:
        """Check whether the file changed since it was last backed up."""
        ...

    def clear(self, path: Path) -> None:
        """Reset the flag after a successful backup."""
        ...


class WindowsArchiveAttribute:
    """FILE_ATTRIBUTE_ARCHIVE, set by Windows whenever a file is written."""

    def is_set(self, path: Path) -> bool:
        attributes = os.stat(path).st_file_attributes  # type: ignore[attr-defined]
        return bool(attributes & stat.FILE_ATTRIBUTE_ARCHIVE)  # type: ignore[attr-defined]

    def clear(self, path: Path) -> None:
        import ctypes

        attributes = os.stat(path).st_file_attributes  # type: ignore[attr-defined]
        kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)  # type: ignore[attr-defined]
        if not kernel32.SetFileAttributesW(
            str(path), attributes & ~stat.FILE_ATTRIBUTE_ARCHIVE  # type: ignore[attr-defined]
        ):
            raise ctypes.WinError(ctypes.get_last_error())  # type: ignore[attr-defined]


def default_archive_indicator(config_dir: Path) -> ArchiveIndicator:
    """Pick the archive indicator for this platform.

    Args:
        config_dir: Directory holding the backup index on non-Windows systems.

    Returns:
        WindowsArchiveAttribute on Windows, a BackupIndex elsewhere.
    """
    if sys.platform == "win32":
        return WindowsArchiveAttribute()
    return BackupIndex(config_dir / BACKUP_INDEX_NAME)


class BackupFilter:
    """Include only files whose archive indicator is set.

    The caller clears the indicator through mark_backed_up() once the
    included file has been uploaded.
    """

    def __init__(self, indicator: ArchiveIndicator) -> None:
        self._indicator = indicator

    def include(self, path: Path) -> bool:
        """Decide whether a file should be uploaded."""
        return self._indicator.is_set(path)

    def mark_backed_up(self, path: Path) -> None:
        """Clear the archive indicator of an uploaded file."""
        self._indicator.clear(path)


class NewOnlyFilter:
    """Drop candidate keys that already exist in the bucket.

    The remote catalog under the prefix is drained completely into a set of
    exact keys before the first decision, so that a plain key and the chunk
    keys sharing its prefix are never confused with each other.
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        prefix: str = "",
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialize the filter.

        Args:
            store: Store to list.
            bucket: Bucket the candidates will be uploaded to.
            prefix: Common prefix of all candidate keys.
            page_size: Maximum entries per listing request.
        """
        self._store = store
        self._bucket = bucket
        self._prefix = prefix
        self._page_size = page_size
        self._existing: set[str] | None = None

    @property
    def existing_keys(self) -> set[str]:
        """Every key under the prefix, listed on first access."""
        if self._existing is None:
            lister = PaginatedLister(self._store, self._bucket, self._prefix, self._page_size)
            self._existing = {entry.key for entry in lister}
            logger.debug(
                f"{len(self._existing)} keys already under {self._bucket}/{self._prefix} "
                f"({lister.pages_fetched} pages)"
            )
        return self._existing

    def exists(self, key: str) -> bool:
        """Check whether one key is already stored."""
        return key in self.existing_keys

    def filter(self, candidates: Iterable[str]) -> list[str]:
        """Return the candidates that are not stored yet, in input order."""
        existing = self.existing_keys
        return [key for key in candidates if key not in existing]
