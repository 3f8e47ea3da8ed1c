"""Abstract store interface.

The CLI and the gate depend on BaseStore, not on SQLite, so the backend can
be replaced without touching them. Every implementation raises StorageError
for engine failures and StatusDecodeError for unreadable statuses; neither is
swallowed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable

from hunkgate_core.progress import summarize_progress

if TYPE_CHECKING:
    from hunkgate_core.models import DiffFile, HunkStatus, ReviewProgress
    from hunkgate_store.models import StoredHunkRecord, SyncResult


class BaseStore(ABC):
    """Persistent per-hunk review state, partitioned by scope."""

    @abstractmethod
    def get_status(self, scope: str, file_path: str, content_hash: str) -> HunkStatus:
        """Return the stored status, or UNREVIEWED when there is no record."""

    @abstractmethod
    def set_status(self, scope: str, file_path: str, content_hash: str, status: HunkStatus) -> None:
        """Create or update one record.

        REVIEWED stamps reviewed_at with the current time; any other status
        clears it.
        """

    @abstractmethod
    def sync_with_diff(self, scope: str, files: Iterable[DiffFile]) -> SyncResult:
        """Reconcile the scope with the hunks of the current diff.

        Pairs seen for the first time are inserted as UNREVIEWED. Existing
        records for pairs that are still present are left alone, which is
        what keeps a REVIEWED decision alive while its content is unchanged.
        Records whose pair is gone become STALE. All of it happens atomically.
        """

    @abstractmethod
    def approve_all(self, scope: str) -> int:
        """Mark every non-REVIEWED record of the scope REVIEWED; return the count."""

    @abstractmethod
    def approve_file(self, scope: str, file_path: str) -> int:
        """Like approve_all(), limited to one file path."""

    @abstractmethod
    def reset(self, scope: str) -> int:
        """Delete every record of the scope; return how many were deleted."""

    @abstractmethod
    def list_scopes(self) -> list[str]:
        """All scopes with at least one record, sorted."""

    @abstractmethod
    def list_records(self, scope: str, file_path: str | None = None) -> list[StoredHunkRecord]:
        """Records of a scope, optionally for one file only."""

    def progress(self, scope: str) -> ReviewProgress:
        """Review-completion counters over the scope's current records.

        A pure read: it does not look at the working tree. Sync first to get
        figures for the current diff.
        """
        return summarize_progress(self.list_records(scope))

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional. Default is a no-op so callers can always call close() safely.
        """
