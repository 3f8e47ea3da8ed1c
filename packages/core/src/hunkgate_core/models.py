"""Diff and review-progress data models.

Shared by the parser, the store and the CLI. Nothing here knows how a status
is written to disk: the text form of HunkStatus belongs to the store layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class HunkStatus(Enum):
    UNREVIEWED = auto()
    REVIEWED = auto()
    STALE = auto()

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass
class DiffHunk:
    """One contiguous block of a unified diff.

    ``content`` keeps the +/-/space prefixes of every body line, joined by
    newlines. ``content_hash`` is derived from ``content`` only, so the same
    change keeps its identity when it moves to other line numbers.
    """

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    content: str
    content_hash: str
    status: HunkStatus = HunkStatus.UNREVIEWED

    @property
    def header(self) -> str:
        return f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"

    @property
    def added(self) -> int:
        return sum(1 for line in self.content.split("\n") if line.startswith("+"))

    @property
    def removed(self) -> int:
        return sum(1 for line in self.content.split("\n") if line.startswith("-"))


@dataclass
class DiffFile:
    """A changed file and its hunks, in diff order."""

    path: str
    hunks: list[DiffHunk] = field(default_factory=list)


@dataclass
class ReviewProgress:
    """Review-completion counters for one scope."""

    reviewed: int = 0
    unreviewed: int = 0
    stale: int = 0
    files_remaining: int = 0
    total_files: int = 0

    @property
    def total_hunks(self) -> int:
        return self.reviewed + self.unreviewed + self.stale

    @property
    def percent_reviewed(self) -> float:
        if not self.total_hunks:
            return 0.0
        return self.reviewed / self.total_hunks * 100
