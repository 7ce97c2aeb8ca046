"""Core module - Chunk planning, key formats, shared types and config."""

from s3chunk.core.chunking import (
    CHUNK_SUFFIX_WIDTH,
    DEFAULT_CHUNK_SIZE,
    MAX_CHUNKS,
    ChunkPlan,
    ChunkSpan,
    check_single_object,
    chunk_key,
    chunk_key_pattern,
    chunk_suffix,
    megabytes_to_bytes,
    plan_chunks,
    sort_chunk_keys,
)
from s3chunk.core.config import StoreConfig
from s3chunk.core.types import (
    ChunkCountError,
    InvalidRequestError,
    ListEntry,
    LocalFileError,
    ListPage,
    NotFoundError,
    ObjectKey,
    Outcome,
    SequenceGapError,
    SizeLimitError,
    TransferError,
    TransferResult,
    TransportError,
)

__all__ = [
    # Chunking
    "CHUNK_SUFFIX_WIDTH",
    "ChunkPlan",
    "ChunkSpan",
    "DEFAULT_CHUNK_SIZE",
    "MAX_CHUNKS",
    "check_single_object",
    "chunk_key",
    "chunk_key_pattern",
    "chunk_suffix",
    "megabytes_to_bytes",
    "plan_chunks",
    "sort_chunk_keys",
    # Config
    "StoreConfig",
    # Types
    "ChunkCountError",
    "InvalidRequestError",
    "ListEntry",
    "LocalFileError",
    "ListPage",
    "NotFoundError",
    "ObjectKey",
    "Outcome",
    "SequenceGapError",
    "SizeLimitError",
    "TransferError",
    "TransferResult",
    "TransportError",
]
