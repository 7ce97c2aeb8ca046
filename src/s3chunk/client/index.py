"""Local backup index using SQLite.

Platforms without a file archive attribute get one emulated here: a file
is "changed" until it has been recorded as backed up with its current
size and modification time.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path


@dataclass
class BackupEntry:
    """Represents a file as it was when last backed up."""

    path: str
    size: int
    mtime: float
    backed_up_at: datetime


class BackupIndex:
    """SQLite-based record of backed-up files.

    Implements the archive indicator interface used by BackupFilter:
    is_set() reports whether a file changed since its last backup and
    clear() records the file as backed up.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the backup index.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS backups (
                path TEXT PRIMARY KEY,
                size INTEGER NOT NULL,
                mtime REAL NOT NULL,
                backed_up_at TEXT NOT NULL
            );
        """)
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> BackupIndex:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    @staticmethod
    def _key(path: Path) -> str:
        return str(Path(path).resolve())

    def get_entry(self, path: Path) -> BackupEntry | None:
        """Get the backup record of a file.

        Args:
            path: Local file path.

        Returns:
            BackupEntry if the file was backed up before, None otherwise.
        """
        cursor = self._conn.execute(
            "SELECT * FROM backups WHERE path = ?",
            (self._key(path),),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return BackupEntry(
            path=row["path"],
            size=row["size"],
            mtime=row["mtime"],
            backed_up_at=datetime.fromisoformat(row["backed_up_at"]),
        )

    def is_set(self, path: Path) -> bool:
        """Check whether a file changed since it was last backed up."""
        entry = self.get_entry(path)
        if entry is None:
            return True
        stat = Path(path).stat()
        return entry.size != stat.st_size or entry.mtime != stat.st_mtime

    def clear(self, path: Path) -> None:
        """Record a file as backed up with its current size and mtime."""
        stat = Path(path).stat()
        self._conn.execute(
            """
            INSERT OR REPLACE INTO backups (path, size, mtime, backed_up_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                self._key(path),
                stat.st_size,
                stat.st_mtime,
                datetime.now(UTC).isoformat(),
            ),
        )
        self._conn.commit()

    def forget(self, path: Path) -> bool:
        """Remove the backup record of a file.

        Returns:
            True if a record was removed.
        """
        cursor = self._conn.execute(
            "DELETE FROM backups WHERE path = ?",
            (self._key(path),),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def count(self) -> int:
        """Get the number of backed-up files."""
        cursor = self._conn.execute("SELECT COUNT(*) FROM backups")
        result = cursor.fetchone()
        return int(result[0]) if result else 0
