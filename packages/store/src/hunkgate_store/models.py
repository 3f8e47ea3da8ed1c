"""Review state data models.

Records are content-addressed: (scope, file_path, content_hash) is the key,
never a line number.
"""

from __future__ import annotations

from dataclasses import dataclass

from hunkgate_core.models import HunkStatus


@dataclass
class StoredHunkRecord:
    """One persisted review decision."""

    scope: str
    file_path: str
    content_hash: str
    status: HunkStatus
    created_at: str  # ISO-8601 UTC timestamp
    reviewed_at: str | None = None  # set iff status is REVIEWED


@dataclass
class SyncResult:
    """What one sync_with_diff() call changed."""

    inserted: int = 0
    staled: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.inserted or self.staled)
