"""s3chunk - Chunked file transfer client for key-addressed object stores."""

__version__ = "0.1.0"
