"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from s3chunk.client.store import LocalFSStore, ObjectStore
from s3chunk.core.config import StoreConfig
from s3chunk.core.types import ListEntry, ListPage


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    """Root directory of the local test store."""
    return tmp_path / "store"


@pytest.fixture
def store(store_root: Path) -> LocalFSStore:
    """Create a LocalFSStore instance for testing."""
    return LocalFSStore(store_root)


@pytest.fixture
def config(store_root: Path) -> StoreConfig:
    """Store configuration for the local test store, with small pages."""
    return StoreConfig(backend="local", local_root=str(store_root), page_size=3)


@pytest.fixture
def paged_store() -> Callable[[Iterable[str]], MagicMock]:
    """Factory for a mock store that serves a fixed set of keys in pages.

    The mock behaves like a marker-based listing: keys sorted, only keys
    after the marker, at most max_keys per page, truncated when more remain.
    """

    def factory(keys: Iterable[str]) -> MagicMock:
        entries = [
            ListEntry(key=key, size=len(key), last_modified=datetime(2025, 1, 1, tzinfo=UTC))
            for key in sorted(keys)
        ]

        def list_bucket(
            bucket: str,
            prefix: str = "",
            marker: str = "",
            max_keys: int = 1000,
            delimiter: str | None = None,
        ) -> ListPage:
            matching = [e for e in entries if e.key.startswith(prefix) and e.key > marker]
            return ListPage(entries=matching[:max_keys], is_truncated=len(matching) > max_keys)

        mock_store = MagicMock(spec=ObjectStore)
        mock_store.list_bucket.side_effect = list_bucket
        return mock_store

    return factory
