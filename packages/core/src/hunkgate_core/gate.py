"""Review gate: the policy that blocks a commit until review is complete."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hunkgate_core.models import ReviewProgress


def gate_passes(progress: ReviewProgress) -> bool:
    """True when nothing is left unreviewed and nothing has gone stale."""
    return progress.unreviewed == 0 and progress.stale == 0


def check_gate(store, scope: str) -> bool:
    """Evaluate the gate for ``scope`` against the store's current contents.

    ``store`` is anything with a ``progress(scope)`` method (a BaseStore in
    practice). Reads only; sync the scope beforehand so the verdict covers
    the current diff.
    """
    return gate_passes(store.progress(scope))
