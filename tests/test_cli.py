"""Tests for CLI commands - put, get, list, configure."""

import json
import sys
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner, Result

from s3chunk.client.cli import cli
from s3chunk.client.cli.context import exit_code_for_results
from s3chunk.client.cli.listing import format_entry
from s3chunk.core.types import ListEntry, Outcome, TransferResult


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def config_dir(tmp_path: Path) -> Iterator[Path]:
    """Point the CLI at a temporary config directory."""
    config = tmp_path / ".s3chunk"
    with patch("s3chunk.client.cli.config.get_config_dir", return_value=config):
        yield config


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    """Root of the local backend used by the CLI."""
    return tmp_path / "store"


@pytest.fixture
def run(runner: CliRunner, store_root: Path) -> Callable[..., Result]:
    """Invoke the CLI against the local backend."""

    def invoke(*args: str) -> Result:
        return runner.invoke(cli, ["--backend", "local", "--local-root", str(store_root), *args])

    return invoke


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    """A 25-byte local file."""
    path = tmp_path / "data.bin"
    path.write_bytes(bytes(range(25)))
    return path


class TestPutCommand:
    """Tests for 's3chunk put' command."""

    def test_put_single_file(self, run: Callable[..., Result], data_file: Path,
                             store_root: Path) -> None:
        """Put should store the file under the key prefix plus its name."""
        result = run("put", "bucket/dir/", str(data_file))

        assert result.exit_code == 0
        assert "Writing to key dir/data.bin" in result.output
        assert (store_root / "bucket" / "dir%2Fdata.bin").read_bytes() == bytes(range(25))

    def test_put_big_with_size(self, run: Callable[..., Result], data_file: Path) -> None:
        """--big=MB should split the file into chunks of that size."""
        result = run("put", "bucket/", str(data_file), "--big=0.00001")

        assert result.exit_code == 0
        for n in range(3):
            assert f"Writing to key data.bin.{n:03d}" in result.output
        assert "data.bin.003" not in result.output

    def test_put_big_default_size(self, run: Callable[..., Result], data_file: Path) -> None:
        """--big without a value should use 10 MB chunks."""
        result = run("put", "bucket/", str(data_file), "--big")

        assert result.exit_code == 0
        assert "Writing to key data.bin.000" in result.output
        assert "data.bin.001" not in result.output

    def test_put_invalid_chunk_size(self, run: Callable[..., Result], data_file: Path) -> None:
        """A zero chunk size should exit with the invalid-request code."""
        result = run("put", "bucket/", str(data_file), "--big=0")
        assert result.exit_code == 3

    @pytest.mark.parametrize("size", ["nan", "inf"])
    def test_put_non_finite_chunk_size(
        self, run: Callable[..., Result], data_file: Path, size: str
    ) -> None:
        """Non-finite chunk sizes should exit with the invalid-request code."""
        result = run("put", "bucket/", str(data_file), f"--big={size}")

        assert result.exit_code == 3
        assert "Error: Chunk size must be a finite number" in result.output

    def test_put_no_match(self, run: Callable[..., Result], tmp_path: Path) -> None:
        """A pattern matching no file should exit with the not-found code."""
        result = run("put", "bucket/", str(tmp_path / "*.nothing"))

        assert result.exit_code == 2
        assert "Not found: *.nothing" in result.output

    def test_put_new_skips_existing(self, run: Callable[..., Result], data_file: Path) -> None:
        """--new should not write keys that are already stored."""
        run("put", "bucket/", str(data_file), "--big=0.00001")

        result = run("put", "bucket/", str(data_file), "--big=0.00001", "--new")

        assert result.exit_code == 0
        assert "Writing to key" not in result.output

    @pytest.mark.skipif(sys.platform == "win32", reason="Uses the SQLite backup index")
    def test_put_backup_skips_unchanged(
        self, run: Callable[..., Result], data_file: Path, config_dir: Path
    ) -> None:
        """--backup should upload a file again only after it changes."""
        first = run("put", "bucket/", str(data_file), "--backup")
        second = run("put", "bucket/", str(data_file), "--backup")
        data_file.write_bytes(b"changed content, longer than before")
        third = run("put", "bucket/", str(data_file), "--backup")

        assert "Writing to key data.bin" in first.output
        assert "Writing to key" not in second.output
        assert "Writing to key data.bin" in third.output
        assert (config_dir / "backup.db").exists()


class TestGetCommand:
    """Tests for 's3chunk get' command."""

    def test_get_to_file(self, run: Callable[..., Result], data_file: Path,
                         tmp_path: Path) -> None:
        """Get should write the object to the given file."""
        run("put", "bucket/", str(data_file))
        dest = tmp_path / "copy.bin"

        result = run("get", "bucket/data.bin", str(dest))

        assert result.exit_code == 0
        assert "Reading from bucket/data.bin" in result.output
        assert dest.read_bytes() == bytes(range(25))

    def test_get_default_filename(
        self, runner: CliRunner, run: Callable[..., Result], data_file: Path, tmp_path: Path
    ) -> None:
        """Without FILENAME the key's last part should be used."""
        run("put", "bucket/a/b/", str(data_file))

        with runner.isolated_filesystem(temp_dir=tmp_path) as cwd:
            result = run("get", "bucket/a/b/data.bin")
            assert result.exit_code == 0
            assert (Path(cwd) / "data.bin").read_bytes() == bytes(range(25))

    def test_get_big_round_trip(self, run: Callable[..., Result], data_file: Path,
                                tmp_path: Path) -> None:
        """A file put with --big should come back whole with get --big."""
        run("put", "bucket/", str(data_file), "--big=0.00001")
        dest = tmp_path / "copy.bin"

        result = run("get", "bucket/data.bin", str(dest), "--big", "--jobs", "2")

        assert result.exit_code == 0
        assert dest.read_bytes() == bytes(range(25))

    def test_get_big_with_gap(self, run: Callable[..., Result], data_file: Path,
                              store_root: Path, tmp_path: Path) -> None:
        """A missing chunk should exit with the not-found code."""
        run("put", "bucket/", str(data_file), "--big=0.00001")
        (store_root / "bucket" / "data.bin.001").unlink()

        result = run("get", "bucket/data.bin", str(tmp_path / "copy.bin"), "--big")

        assert result.exit_code == 2
        assert "expected 1" in result.output

    def test_get_big_unwritable_destination(
        self, run: Callable[..., Result], data_file: Path, tmp_path: Path
    ) -> None:
        """A destination in a missing directory should be reported, not crash."""
        run("put", "bucket/", str(data_file), "--big=0.00001")

        result = run("get", "bucket/data.bin", str(tmp_path / "no" / "out"), "--big")

        assert result.exit_code == 3
        assert "Error: data.bin:" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_get_missing(self, run: Callable[..., Result], tmp_path: Path) -> None:
        """A missing key should exit with the not-found code."""
        result = run("get", "bucket/missing", str(tmp_path / "out"))

        assert result.exit_code == 2
        assert "Not found: bucket/missing" in result.output

    def test_get_requires_key(self, run: Callable[..., Result]) -> None:
        """A source without key should exit with the invalid-request code."""
        result = run("get", "bucket")
        assert result.exit_code == 3

    def test_get_big_wildcard_rejected(self, run: Callable[..., Result]) -> None:
        """Chunked downloads do not take wildcards."""
        result = run("get", "bucket/data*", "--big")
        assert result.exit_code == 3


class TestListCommand:
    """Tests for 's3chunk list' command."""

    def test_list_prefix(self, run: Callable[..., Result], data_file: Path) -> None:
        """List should print one line per key and a summary."""
        run("put", "bucket/docs/", str(data_file))
        run("put", "bucket/other/", str(data_file))

        result = run("list", "bucket/docs/*")

        assert result.exit_code == 0
        assert "0.0M\tdocs/data.bin" in result.output
        assert "other/data.bin" not in result.output
        assert "1 files listed" in result.output

    def test_list_all_chunks(self, run: Callable[..., Result], data_file: Path) -> None:
        """Every chunk key should be listed."""
        run("put", "bucket/", str(data_file), "--big=0.000001")

        result = run("list", "bucket")

        assert result.exit_code == 0
        assert "25 files listed" in result.output

    def test_list_buckets(self, run: Callable[..., Result], data_file: Path) -> None:
        """Without target, list should print the buckets."""
        run("put", "alpha/", str(data_file))
        run("put", "beta/", str(data_file))

        result = run("list")

        assert result.exit_code == 0
        assert result.output.splitlines() == ["alpha", "beta", "2 buckets listed"]

    def test_format_entry(self) -> None:
        """Entries show date, size in MB with one decimal, and key."""
        entry = ListEntry(
            key="dir/file.iso",
            size=3 * 1024 * 1024 + 200 * 1024,
            last_modified=datetime(2024, 5, 17, 8, 30, 0, tzinfo=UTC),
        )
        assert format_entry(entry) == "2024-05-17 08:30:00\t3.2M\tdir/file.iso"


class TestConfigureCommand:
    """Tests for 's3chunk configure' command."""

    def test_configure_saves_settings(
        self, runner: CliRunner, config_dir: Path, store_root: Path, data_file: Path
    ) -> None:
        """Stored settings should be used by later commands."""
        result = runner.invoke(
            cli, ["configure", "--backend", "local", "--local-root", str(store_root)]
        )

        assert result.exit_code == 0
        saved = json.loads((config_dir / "config.json").read_text())
        assert saved == {"backend": "local", "local_root": str(store_root)}

        result = runner.invoke(cli, ["put", "bucket/", str(data_file)])
        assert result.exit_code == 0
        assert (store_root / "bucket" / "data.bin").exists()

    def test_configure_unset(self, runner: CliRunner, config_dir: Path) -> None:
        """--unset should remove a stored setting."""
        runner.invoke(cli, ["configure", "--region", "eu-west-3", "--profile", "dev"])

        result = runner.invoke(cli, ["configure", "--unset", "region"])

        assert result.exit_code == 0
        assert json.loads((config_dir / "config.json").read_text()) == {"profile": "dev"}

    def test_configure_shows_settings(self, runner: CliRunner) -> None:
        """Without options, configure should print the current settings."""
        result = runner.invoke(cli, ["configure"])

        assert result.exit_code == 0
        assert "backend: " in result.output
        assert "Saved" not in result.output

    def test_local_backend_without_root(self, runner: CliRunner, data_file: Path) -> None:
        """Using the local backend without a root should be an invalid request."""
        result = runner.invoke(cli, ["--backend", "local", "put", "bucket/", str(data_file)])
        assert result.exit_code == 3


class TestExitCodes:
    """Tests for store setup failures and batch exit codes."""

    def test_unusable_local_root(self, runner: CliRunner, tmp_path: Path,
                                 data_file: Path) -> None:
        """A local root that cannot be created should be an invalid request."""
        root = tmp_path / "not-a-dir"
        root.write_text("")

        result = runner.invoke(
            cli, ["--backend", "local", "--local-root", str(root), "put", "bucket/", str(data_file)]
        )

        assert result.exit_code == 3
        assert "Error:" in result.output

    def test_local_error_exit_code(self) -> None:
        """Local file errors rank below transport errors and above not-found."""
        local = TransferResult("a", Outcome.LOCAL_ERROR)
        missing = TransferResult("b", Outcome.NOT_FOUND)
        transport = TransferResult("c", Outcome.TRANSPORT_ERROR)

        assert exit_code_for_results([missing, local]) == 3
        assert exit_code_for_results([local, transport]) == 1
        assert exit_code_for_results([missing]) == 2
