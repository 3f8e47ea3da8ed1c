"""Store error kinds.

StorageError is an engine failure. StatusDecodeError is a stored value the
engine does not understand; it is never mapped to a default status.
"""

from __future__ import annotations


class StorageError(Exception):
    """The persistence engine failed (cannot open, locked, corrupt, ...)."""


class StatusDecodeError(Exception):
    """A persisted status value is not one of the known statuses."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"unknown hunk status in review store: {value!r}")
