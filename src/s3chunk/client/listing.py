"""Lazy, marker-based enumeration of a bucket.

This module provides:
- PaginatedLister: cursor over a bounded-page listing call
- list_catalog: convenience wrapper returning the lister as an iterator
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from s3chunk.core.config import DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from s3chunk.client.store import ObjectStore
    from s3chunk.core.types import ListEntry

logger = logging.getLogger(__name__)


class PaginatedLister:
    """Single-pass cursor over every entry under (bucket, prefix).

    Each call to fetch_next_page() issues one listing request starting after
    `marker`. When the store reports a truncated page, the marker moves to the
    last key of that page; otherwise the cursor is exhausted. Pages are not
    kept after they are returned.

    Usage:
        lister = PaginatedLister(store, "bucket", "photos/")
        for entry in lister:
            ...

    Store errors propagate to the consumer; entries already yielded stay valid.
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        prefix: str = "",
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialize the cursor.

        Args:
            store: Store to list.
            bucket: Bucket to list.
            prefix: Only keys starting with this prefix are returned.
            page_size: Maximum entries per listing request.
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._store = store
        self._bucket = bucket
        self._prefix = prefix
        self._page_size = page_size
        self._marker = ""
        self._exhausted = False
        self._iterating = False
        self._pages_fetched = 0

    @property
    def marker(self) -> str:
        """Key after which the next page starts ("" before the first page)."""
        return self._marker

    @property
    def exhausted(self) -> bool:
        """True once the store has returned its last page."""
        return self._exhausted

    @property
    def pages_fetched(self) -> int:
        """Number of listing requests issued so far."""
        return self._pages_fetched

    def fetch_next_page(self) -> list[ListEntry]:
        """Request the next page and advance the cursor.

        Returns:
            Entries of the page in store order; empty once exhausted.
        """
        if self._exhausted:
            return []

        page = self._store.list_bucket(
            self._bucket,
            prefix=self._prefix,
            marker=self._marker,
            max_keys=self._page_size,
        )
        self._pages_fetched += 1
        logger.debug(
            f"Listed {self._bucket}/{self._prefix} page {self._pages_fetched}: "
            f"{len(page.entries)} entries after {self._marker!r}, "
            f"truncated={page.is_truncated}"
        )

        if page.is_truncated and page.entries:
            self._marker = page.entries[-1].key
        else:
            if page.is_truncated:
                logger.warning(f"Store reported a truncated empty page for {self._bucket}")
            self._exhausted = True
        return page.entries

    def __iter__(self) -> Iterator[ListEntry]:
        """Iterate over all entries, fetching pages on demand.

        Raises:
            RuntimeError: If iteration was already started.
        """
        if self._iterating:
            raise RuntimeError("PaginatedLister can only be iterated once")
        self._iterating = True
        return self._iterate()

    def _iterate(self) -> Iterator[ListEntry]:
        while not self._exhausted:
            yield from self.fetch_next_page()


def list_catalog(
    store: ObjectStore,
    bucket: str,
    prefix: str = "",
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Iterator[ListEntry]:
    """Lazily list every entry under (bucket, prefix).

    Args:
        store: Store to list.
        bucket: Bucket to list.
        prefix: Key prefix.
        page_size: Maximum entries per listing request.

    Returns:
        Iterator over ListEntry values, one listing request per page.
    """
    return iter(PaginatedLister(store, bucket, prefix, page_size))
