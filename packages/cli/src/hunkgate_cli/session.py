"""Interactive review session state.

The session is a finite-state machine over a closed set of modes. Every key
press is routed by the current mode alone, so input handling can be tested
without a terminal; rendering lives in commands/review.py and only reads the
session.

    OVERVIEW --enter--> HUNKS --esc--> OVERVIEW
    OVERVIEW/HUNKS --?--> HELP --any--> (previous)
    OVERVIEW/HUNKS --A / F--> CONFIRM --y: run action / other: cancel--> (previous)
    OVERVIEW/HUNKS --q--> QUIT
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import TYPE_CHECKING

from hunkgate_core.models import HunkStatus

if TYPE_CHECKING:
    from hunkgate_core.models import DiffFile, DiffHunk
    from hunkgate_store.base import BaseStore

logger = logging.getLogger(__name__)


class Mode(Enum):
    OVERVIEW = auto()
    HUNKS = auto()
    CONFIRM = auto()
    HELP = auto()
    QUIT = auto()


class Filter(Enum):
    ALL = auto()
    UNREVIEWED = auto()
    STALE = auto()

    def matches(self, status: HunkStatus) -> bool:
        if self is Filter.UNREVIEWED:
            return status is HunkStatus.UNREVIEWED
        if self is Filter.STALE:
            return status is HunkStatus.STALE
        return True


class ConfirmAction(Enum):
    APPROVE_FILE = auto()
    APPROVE_ALL = auto()


_FILTER_KEYS = {"a": Filter.ALL, "u": Filter.UNREVIEWED, "s": Filter.STALE}


class ReviewSession:
    """Selection, filter and mode for reviewing one scope.

    Hunk statuses are read from the store when the session starts and after
    every bulk action; toggles write through to the store immediately.
    """

    def __init__(self, store: BaseStore, scope: str, files: list[DiffFile]):
        self.store = store
        self.scope = scope
        self.files = files
        self.mode = Mode.OVERVIEW
        self.filter = Filter.ALL
        self.selected_file = 0
        self.selected_hunk = 0
        self.pending: ConfirmAction | None = None
        self.message: str | None = None
        self._return_mode = Mode.OVERVIEW
        self.reload_statuses()

    # ------------------------------------------------------------------ #
    # Queries used by the renderer                                        #
    # ------------------------------------------------------------------ #

    @property
    def finished(self) -> bool:
        return self.mode is Mode.QUIT

    @property
    def return_mode(self) -> Mode:
        """The mode HELP and CONFIRM go back to."""
        return self._return_mode

    def visible_files(self) -> list[int]:
        return [
            i for i, f in enumerate(self.files) if any(self.filter.matches(h.status) for h in f.hunks)
        ]

    def visible_hunks(self) -> list[int]:
        if not self.files:
            return []
        hunks = self.files[self.selected_file].hunks
        return [i for i, h in enumerate(hunks) if self.filter.matches(h.status)]

    def current_file(self) -> DiffFile | None:
        if self.selected_file < len(self.files):
            return self.files[self.selected_file]
        return None

    def current_hunk(self) -> DiffHunk | None:
        diff_file = self.current_file()
        if diff_file is None or self.selected_hunk not in self.visible_hunks():
            return None
        return diff_file.hunks[self.selected_hunk]

    # ------------------------------------------------------------------ #
    # Input routing                                                       #
    # ------------------------------------------------------------------ #

    def handle_key(self, key: str) -> None:
        self.message = None
        if self.mode is Mode.CONFIRM:
            self._handle_confirm(key)
        elif self.mode is Mode.HELP:
            self.mode = self._return_mode
        elif self.mode is Mode.OVERVIEW:
            self._handle_overview(key)
        elif self.mode is Mode.HUNKS:
            self._handle_hunks(key)

    def _handle_overview(self, key: str) -> None:
        if key in ("q", "esc"):
            self.mode = Mode.QUIT
        elif key == "?":
            self._enter(Mode.HELP)
        elif key == "j":
            self._move_file(1)
        elif key == "k":
            self._move_file(-1)
        elif key == "enter":
            if self.visible_files():
                self._reset_hunk_selection()
                self.mode = Mode.HUNKS
        elif key == "A":
            self._ask(ConfirmAction.APPROVE_ALL)

    def _handle_hunks(self, key: str) -> None:
        if key == "q":
            self.mode = Mode.QUIT
        elif key == "esc":
            self.mode = Mode.OVERVIEW
        elif key == "?":
            self._enter(Mode.HELP)
        elif key == "j":
            self._move_hunk(1)
        elif key == "k":
            self._move_hunk(-1)
        elif key == "n":
            self._move_file(1)
        elif key == "p":
            self._move_file(-1)
        elif key == " ":
            self.toggle_reviewed()
        elif key in _FILTER_KEYS:
            self.filter = _FILTER_KEYS[key]
            self._reset_selection()
        elif key == "F":
            self._ask(ConfirmAction.APPROVE_FILE)
        elif key == "A":
            self._ask(ConfirmAction.APPROVE_ALL)

    def _handle_confirm(self, key: str) -> None:
        action, self.pending = self.pending, None
        self.mode = self._return_mode
        if key not in ("y", "Y"):
            self.message = "Cancelled."
            return
        if action is ConfirmAction.APPROVE_FILE:
            diff_file = self.current_file()
            if diff_file is not None:
                count = self.store.approve_file(self.scope, diff_file.path)
                self.message = f"Approved {count} hunks in {diff_file.path}."
        elif action is ConfirmAction.APPROVE_ALL:
            count = self.store.approve_all(self.scope)
            self.message = f"Approved {count} hunks."
        self.reload_statuses()

    def _enter(self, mode: Mode) -> None:
        self._return_mode = self.mode
        self.mode = mode

    def _ask(self, action: ConfirmAction) -> None:
        if not self.files:
            return
        self.pending = action
        self._enter(Mode.CONFIRM)

    # ------------------------------------------------------------------ #
    # Actions                                                             #
    # ------------------------------------------------------------------ #

    def toggle_reviewed(self) -> None:
        """Flip the selected hunk between REVIEWED and not reviewed.

        A STALE hunk counts as not reviewed, so toggling it marks it REVIEWED.
        """
        diff_file = self.current_file()
        hunk = self.current_hunk()
        if diff_file is None or hunk is None:
            return
        new_status = HunkStatus.UNREVIEWED if hunk.status is HunkStatus.REVIEWED else HunkStatus.REVIEWED
        self.store.set_status(self.scope, diff_file.path, hunk.content_hash, new_status)
        hunk.status = new_status

    def reload_statuses(self) -> None:
        for diff_file in self.files:
            for hunk in diff_file.hunks:
                hunk.status = self.store.get_status(self.scope, diff_file.path, hunk.content_hash)

    # ------------------------------------------------------------------ #
    # Navigation                                                          #
    # ------------------------------------------------------------------ #

    def _move_file(self, step: int) -> None:
        visible = self.visible_files()
        if not visible:
            return
        if self.selected_file in visible:
            pos = visible.index(self.selected_file) + step
            if 0 <= pos < len(visible):
                self.selected_file = visible[pos]
        else:
            self.selected_file = visible[0]
        self._reset_hunk_selection()

    def _move_hunk(self, step: int) -> None:
        visible = self.visible_hunks()
        if not visible:
            return
        if self.selected_hunk in visible:
            pos = visible.index(self.selected_hunk) + step
            if 0 <= pos < len(visible):
                self.selected_hunk = visible[pos]
        else:
            self.selected_hunk = visible[0]

    def _reset_hunk_selection(self) -> None:
        visible = self.visible_hunks()
        self.selected_hunk = visible[0] if visible else 0

    def _reset_selection(self) -> None:
        visible = self.visible_files()
        self.selected_file = visible[0] if visible else 0
        self._reset_hunk_selection()
