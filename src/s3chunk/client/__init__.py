"""Client module - store adapters, listing, filters and transfers.

Upload path:
    BackupFilter -> NewOnlyFilter (drains PaginatedLister) -> plan_chunks -> ObjectStore.put

Download path:
    PaginatedLister -> chunk key filter/sort -> ChunkAssembler -> ObjectStore.get
"""

from s3chunk.client.download import AssemblyState, ChunkAssembler, FileDownloader
from s3chunk.client.filters import (
    ArchiveIndicator,
    BackupFilter,
    NewOnlyFilter,
    WindowsArchiveAttribute,
    default_archive_indicator,
)
from s3chunk.client.index import BackupEntry, BackupIndex
from s3chunk.client.listing import PaginatedLister, list_catalog
from s3chunk.client.store import LocalFSStore, ObjectStore, S3Store, StoredObject, create_store
from s3chunk.client.upload import FileUploader, expand_local_pattern

__all__ = [
    # Store
    "LocalFSStore",
    "ObjectStore",
    "S3Store",
    "StoredObject",
    "create_store",
    # Listing
    "PaginatedLister",
    "list_catalog",
    # Filters
    "ArchiveIndicator",
    "BackupEntry",
    "BackupFilter",
    "BackupIndex",
    "NewOnlyFilter",
    "WindowsArchiveAttribute",
    "default_archive_indicator",
    # Transfers
    "AssemblyState",
    "ChunkAssembler",
    "FileDownloader",
    "FileUploader",
    "expand_local_pattern",
]
