"""Review progress aggregation.

A read-only rollup over stored hunk records. It reflects whatever the last
reconciliation left in the store: callers that want figures for the current
diff must sync the scope first.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from hunkgate_core.models import HunkStatus, ReviewProgress


def summarize_progress(records: Iterable) -> ReviewProgress:
    """Count records by status and by file.

    ``records`` are any objects with ``file_path`` and ``status`` (a
    HunkStatus) attributes, normally hunkgate_store StoredHunkRecords.
    """
    counts: Counter[HunkStatus] = Counter()
    all_files: set[str] = set()
    open_files: set[str] = set()

    for record in records:
        counts[record.status] += 1
        all_files.add(record.file_path)
        if record.status is not HunkStatus.REVIEWED:
            open_files.add(record.file_path)

    return ReviewProgress(
        reviewed=counts[HunkStatus.REVIEWED],
        unreviewed=counts[HunkStatus.UNREVIEWED],
        stale=counts[HunkStatus.STALE],
        files_remaining=len(open_files),
        total_files=len(all_files),
    )
