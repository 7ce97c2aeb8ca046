"""Tests for shared types and the error taxonomy."""

import pytest

from s3chunk.core.types import (
    ChunkCountError,
    InvalidRequestError,
    LocalFileError,
    NotFoundError,
    ObjectKey,
    Outcome,
    SequenceGapError,
    SizeLimitError,
    TransferError,
    TransferResult,
    TransportError,
)


class TestObjectKey:
    """Tests for ObjectKey parsing."""

    def test_bucket_only(self) -> None:
        """A string without slash is a bucket with an empty key."""
        assert ObjectKey.parse("photos") == ObjectKey(bucket="photos", key="")

    def test_splits_at_first_slash(self) -> None:
        """Everything after the first slash belongs to the key."""
        key = ObjectKey.parse("photos/2024/summer/pic.jpg")
        assert key.bucket == "photos"
        assert key.key == "2024/summer/pic.jpg"

    def test_trailing_slash_kept_in_key(self) -> None:
        """A key prefix ending in a slash should keep the slash."""
        assert ObjectKey.parse("photos/2024/").key == "2024/"

    def test_str(self) -> None:
        """str() should give back the bucket/key form."""
        assert str(ObjectKey("photos", "a/b")) == "photos/a/b"
        assert str(ObjectKey("photos")) == "photos"


class TestErrors:
    """Tests for error messages and hierarchy."""

    def test_all_errors_are_transfer_errors(self) -> None:
        """Every taxonomy error should derive from TransferError."""
        for cls in (NotFoundError, SequenceGapError, SizeLimitError, TransportError,
                    InvalidRequestError, ChunkCountError, LocalFileError):
            assert issubclass(cls, TransferError)

    def test_not_found_message(self) -> None:
        """NotFoundError should name what was missing."""
        error = NotFoundError("bucket/key")
        assert error.what == "bucket/key"
        assert str(error) == "Not found: bucket/key"

    def test_sequence_gap_message(self) -> None:
        """SequenceGapError should name the expected number and the key seen."""
        assert str(SequenceGapError(1, "base.002")) == (
            "Missing or out-of-order chunk: expected 1, found base.002"
        )
        assert SequenceGapError(3).found is None

    def test_transport_error_details(self) -> None:
        """TransportError should keep the status and error code."""
        error = TransportError("AccessDenied\tAccess Denied", 403, "AccessDenied")
        assert error.status_code == 403
        assert error.code == "AccessDenied"

    def test_local_file_error_message(self) -> None:
        """LocalFileError should name the path and the OS reason."""
        error = LocalFileError("out.bin", FileNotFoundError(2, "No such file or directory"))
        assert error.path == "out.bin"
        assert str(error) == "out.bin: No such file or directory"


class TestTransferResult:
    """Tests for TransferResult."""

    @pytest.mark.parametrize(
        ("error", "outcome"),
        [
            (NotFoundError("x"), Outcome.NOT_FOUND),
            (SequenceGapError(2, "x.003"), Outcome.SEQUENCE_GAP),
            (SizeLimitError("x", 10, 5), Outcome.TOO_LARGE),
            (ChunkCountError("x", 10, 5, "too many chunks"), Outcome.TOO_LARGE),
            (TransportError("boom"), Outcome.TRANSPORT_ERROR),
            (LocalFileError("out.bin", IsADirectoryError(21, "Is a directory")), Outcome.LOCAL_ERROR),
        ],
    )
    def test_from_error(self, error: TransferError, outcome: Outcome) -> None:
        """Each error class should map onto its outcome."""
        result = TransferResult.from_error("target", error)
        assert result.outcome is outcome
        assert result.error is error
        assert result.target == "target"

    def test_failed(self) -> None:
        """Only not-found, gaps and transport errors count as failures."""
        assert not TransferResult("a", Outcome.UPLOADED).failed
        assert not TransferResult("a", Outcome.TOO_LARGE).failed
        assert not TransferResult("a", Outcome.SKIPPED_EXISTING).failed
        assert TransferResult("a", Outcome.NOT_FOUND).failed
        assert TransferResult("a", Outcome.SEQUENCE_GAP).failed
        assert TransferResult("a", Outcome.TRANSPORT_ERROR).failed
        assert TransferResult("a", Outcome.LOCAL_ERROR).failed
