"""Helpers shared by the CLI commands.

sync_scope() is the only way commands read progress for a diff: it always
reconciles the store with the freshly parsed diff before reading, because
progress over an unsynced scope describes an older diff.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

import click
from rich.console import Console

from hunkgate_core.errors import GitError, InvalidRefError
from hunkgate_core.git.repo import get_diff
from hunkgate_core.models import ReviewProgress
from hunkgate_core.parser import parse_diff
from hunkgate_store.errors import StatusDecodeError, StorageError

if TYPE_CHECKING:
    from hunkgate_core.models import DiffFile
    from hunkgate_store.base import BaseStore

console = Console()
logger = logging.getLogger(__name__)


def get_store(ctx: click.Context) -> BaseStore:
    store = ctx.obj.get("store") if ctx.obj else None
    if store is None:
        raise click.UsageError("No review store available.")
    return store


def get_config(ctx: click.Context) -> dict:
    return ctx.obj.get("config", {}) if ctx.obj else {}


def resolve_range(ctx: click.Context, diff_range: str | None) -> str:
    return diff_range or get_config(ctx).get("default_range") or "HEAD"


def sync_scope(store: BaseStore, diff_range: str) -> tuple[list[DiffFile], ReviewProgress]:
    """Parse the current diff for ``diff_range``, reconcile, then read progress.

    The scope key is the range string itself. Returns no files and empty
    progress when the diff has no hunks; the store is left untouched then.
    """
    files = parse_diff(get_diff(diff_range))
    if not files:
        return [], ReviewProgress()
    store.sync_with_diff(diff_range, files)
    return files, store.progress(diff_range)


def print_progress(diff_range: str, progress: ReviewProgress) -> None:
    console.print(f"\n[bold]Review progress for [cyan]{diff_range}[/cyan][/bold]")
    console.print(f"  Reviewed:   {progress.reviewed}/{progress.total_hunks} ({progress.percent_reviewed:.0f}%)")
    console.print(f"  Unreviewed: {progress.unreviewed}")
    console.print(f"  Stale:      {progress.stale}")
    console.print(f"  Files:      {progress.files_remaining}/{progress.total_files} remaining")

    if progress.unreviewed == 0 and progress.stale == 0:
        console.print("\n[green]All hunks reviewed.[/green]")
    elif progress.stale:
        console.print("\n[yellow]Some hunks are stale: the code changed after it was reviewed.[/yellow]")


def handle_errors(func):
    """Turn engine errors into click exceptions with readable messages.

    InvalidRefError is a usage problem (exit 2); everything else aborts the
    command with exit 1.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except InvalidRefError as e:
            raise click.UsageError(str(e))
        except StatusDecodeError as e:
            raise click.ClickException(f"Review database contains an unreadable status: {e}")
        except StorageError as e:
            raise click.ClickException(f"Review database error: {e}")
        except GitError as e:
            raise click.ClickException(str(e))

    return wrapper
