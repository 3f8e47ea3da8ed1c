"""SQLiteStore: the review state database.

One database file per repository. SQLite's file lock serialises separate
processes (an interactive review and a commit-time gate check), and each
reconciliation runs in a single transaction, so an interrupted sync leaves
the scope as it was before.

Schema:
  hunks: one row per (scope, file_path, content_hash). Status is stored as
         text; the mapping to HunkStatus lives only in this module.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Iterator

from hunkgate_core.models import HunkStatus
from hunkgate_store.base import BaseStore
from hunkgate_store.errors import StatusDecodeError, StorageError
from hunkgate_store.models import StoredHunkRecord, SyncResult

if TYPE_CHECKING:
    from hunkgate_core.models import DiffFile

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS hunks (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    scope         TEXT NOT NULL,
    file_path     TEXT NOT NULL,
    content_hash  TEXT NOT NULL,
    status        TEXT NOT NULL DEFAULT 'unreviewed',
    reviewed_at   TEXT,
    created_at    TEXT NOT NULL,
    UNIQUE (scope, file_path, content_hash)
);
CREATE INDEX IF NOT EXISTS idx_hunks_scope ON hunks (scope);
"""

_STATUS_TO_DB = {
    HunkStatus.UNREVIEWED: "unreviewed",
    HunkStatus.REVIEWED: "reviewed",
    HunkStatus.STALE: "stale",
}
_DB_TO_STATUS = {text: status for status, text in _STATUS_TO_DB.items()}


def encode_status(status: HunkStatus) -> str:
    return _STATUS_TO_DB[status]


def decode_status(value) -> HunkStatus:
    """Map a stored status back to HunkStatus; unknown values are an error."""
    try:
        return _DB_TO_STATUS[value]
    except (KeyError, TypeError):
        raise StatusDecodeError(value) from None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore(BaseStore):
    """Review state in a local SQLite database file.

    The connection runs in autocommit mode; writes that must be atomic are
    wrapped in an explicit ``BEGIN IMMEDIATE`` transaction, which takes the
    write lock up front. ``timeout`` is how long to wait for another process
    holding that lock before giving up with StorageError.
    """

    def __init__(self, db_path: str = "review.db", timeout: float = 5.0):
        self._db_path = db_path
        try:
            self._conn = sqlite3.connect(db_path, timeout=timeout, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open review database {db_path}: {e}") from e

    @contextmanager
    def _errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            raise StorageError(f"{operation} failed on {self._db_path}: {e}") from e

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        else:
            self._conn.execute("COMMIT")

    def get_status(self, scope: str, file_path: str, content_hash: str) -> HunkStatus:
        with self._errors("get_status"):
            row = self._conn.execute(
                "SELECT status FROM hunks WHERE scope=? AND file_path=? AND content_hash=?",
                (scope, file_path, content_hash),
            ).fetchone()
        if row is None:
            return HunkStatus.UNREVIEWED
        return decode_status(row["status"])

    def set_status(self, scope: str, file_path: str, content_hash: str, status: HunkStatus) -> None:
        now = _now()
        reviewed_at = now if status is HunkStatus.REVIEWED else None
        with self._errors("set_status"):
            self._conn.execute(
                """
                INSERT INTO hunks (scope, file_path, content_hash, status, reviewed_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (scope, file_path, content_hash)
                DO UPDATE SET status = excluded.status, reviewed_at = excluded.reviewed_at
                """,
                (scope, file_path, content_hash, encode_status(status), reviewed_at, now),
            )

    def sync_with_diff(self, scope: str, files: Iterable[DiffFile]) -> SyncResult:
        current = {(f.path, h.content_hash) for f in files for h in f.hunks}
        now = _now()
        result = SyncResult()

        with self._errors("sync_with_diff"), self._transaction() as conn:
            for file_path, content_hash in sorted(current):
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO hunks (scope, file_path, content_hash, status, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (scope, file_path, content_hash, encode_status(HunkStatus.UNREVIEWED), now),
                )
                result.inserted += cursor.rowcount

            rows = conn.execute(
                "SELECT id, file_path, content_hash FROM hunks WHERE scope=? AND status != ?",
                (scope, encode_status(HunkStatus.STALE)),
            ).fetchall()
            gone = [(row["id"],) for row in rows if (row["file_path"], row["content_hash"]) not in current]
            if gone:
                conn.executemany(
                    "UPDATE hunks SET status=?, reviewed_at=NULL WHERE id=?",
                    [(encode_status(HunkStatus.STALE), row_id) for (row_id,) in gone],
                )
            result.staled = len(gone)

        logger.debug("Synced scope %s: %d inserted, %d marked stale", scope, result.inserted, result.staled)
        return result

    def approve_all(self, scope: str) -> int:
        with self._errors("approve_all"):
            cursor = self._conn.execute(
                "UPDATE hunks SET status=?, reviewed_at=? WHERE scope=? AND status != ?",
                (encode_status(HunkStatus.REVIEWED), _now(), scope, encode_status(HunkStatus.REVIEWED)),
            )
        return cursor.rowcount

    def approve_file(self, scope: str, file_path: str) -> int:
        with self._errors("approve_file"):
            cursor = self._conn.execute(
                "UPDATE hunks SET status=?, reviewed_at=? WHERE scope=? AND file_path=? AND status != ?",
                (
                    encode_status(HunkStatus.REVIEWED),
                    _now(),
                    scope,
                    file_path,
                    encode_status(HunkStatus.REVIEWED),
                ),
            )
        return cursor.rowcount

    def reset(self, scope: str) -> int:
        with self._errors("reset"):
            cursor = self._conn.execute("DELETE FROM hunks WHERE scope=?", (scope,))
        return cursor.rowcount

    def list_scopes(self) -> list[str]:
        with self._errors("list_scopes"):
            rows = self._conn.execute("SELECT DISTINCT scope FROM hunks ORDER BY scope").fetchall()
        return [row["scope"] for row in rows]

    def list_records(self, scope: str, file_path: str | None = None) -> list[StoredHunkRecord]:
        with self._errors("list_records"):
            if file_path is not None:
                rows = self._conn.execute(
                    "SELECT * FROM hunks WHERE scope=? AND file_path=? ORDER BY file_path, id",
                    (scope, file_path),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT * FROM hunks WHERE scope=? ORDER BY file_path, id",
                    (scope,),
                ).fetchall()

        return [self._row_to_record(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> StoredHunkRecord:
        return StoredHunkRecord(
            scope=row["scope"],
            file_path=row["file_path"],
            content_hash=row["content_hash"],
            status=decode_status(row["status"]),
            created_at=row["created_at"],
            reviewed_at=row["reviewed_at"],
        )
