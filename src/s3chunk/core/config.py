"""Shared configuration classes for s3chunk.

This module defines the store configuration that is built once at startup
and passed explicitly to the store adapter and to every operation.
"""

from __future__ import annotations

from dataclasses import dataclass

# Largest single object the store accepts
DEFAULT_MAX_OBJECT_SIZE = 5 * 1024 * 1024 * 1024  # 5 GB

# Keys requested per listing call
DEFAULT_PAGE_SIZE = 250

BACKENDS = ("s3", "local")


@dataclass
class StoreConfig:
    """Configuration for connecting to an object store.

    Attributes:
        backend: "s3" for an S3-compatible service, "local" for a directory.
        endpoint_url: Custom endpoint URL (MinIO, OVH, ...). None for AWS.
        region: Region name passed to the client.
        profile: Named credentials profile; None uses the default chain.
        local_root: Root directory for the "local" backend.
        page_size: Maximum keys per listing page.
        max_object_size: Largest object accepted by a single put.
        timeout: Connect/read timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    backend: str = "s3"
    endpoint_url: str | None = None
    region: str | None = None
    profile: str | None = None
    local_root: str | None = None
    page_size: int = DEFAULT_PAGE_SIZE
    max_object_size: int = DEFAULT_MAX_OBJECT_SIZE
    timeout: float = 60.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize endpoint URL and validate sizes."""
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend: {self.backend}")
        if self.endpoint_url:
            self.endpoint_url = self.endpoint_url.rstrip("/")
        else:
            self.endpoint_url = None
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")
        if self.max_object_size <= 0:
            raise ValueError("max_object_size must be positive")

    @property
    def is_secure(self) -> bool:
        """Check if the endpoint uses HTTPS.

        Returns:
            True for HTTPS endpoints and for the default AWS endpoint.
        """
        return self.endpoint_url is None or self.endpoint_url.startswith("https://")
