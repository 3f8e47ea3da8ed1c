"""branches and watch commands: review progress across local branches.

Each branch is reviewed as the scope ``<base>..<branch>``. A branch whose
details cannot be fetched (deleted mid-run, a name git accepts but our ref
check does not) keeps its row with blank cells instead of aborting the
whole listing.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from hunkgate_cli.workflow import get_config, get_store, handle_errors, sync_scope
from hunkgate_core.errors import GitError
from hunkgate_core.gate import gate_passes
from hunkgate_core.git.repo import (
    BranchDetail,
    BranchInfo,
    detect_default_branch,
    get_branch_detail,
    get_current_branch,
    get_head_sha,
    list_branches,
)
from hunkgate_core.models import ReviewProgress

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class BranchRow:
    info: BranchInfo
    scope: str
    detail: BranchDetail | None = None
    progress: ReviewProgress | None = None  # None = lookup failed or nothing to review


def _resolve_base(ctx: click.Context, base: str | None) -> str:
    return base or get_config(ctx).get("base_branch") or detect_default_branch()


def _load_row(store, base: str, info: BranchInfo, with_detail: bool = True) -> BranchRow:
    row = BranchRow(info=info, scope=f"{base}..{info.name}")
    if with_detail:
        try:
            row.detail = get_branch_detail(base, info.name)
        except GitError as e:
            logger.warning("Could not load details for %s: %s", info.name, e)
    try:
        files, progress = sync_scope(store, row.scope)
    except GitError as e:
        logger.warning("Could not sync %s: %s", row.scope, e)
    else:
        if files:
            row.progress = progress
    return row


def _progress_cell(progress: ReviewProgress | None) -> str:
    if progress is None:
        return ""
    style = "green" if gate_passes(progress) else "yellow"
    return f"[{style}]{progress.reviewed}/{progress.total_hunks} ({progress.percent_reviewed:.0f}%)[/{style}]"


@click.command("branches")
@click.option("--base", default=None, help="Branch to compare against. Defaults to the repository's default branch.")
@click.pass_context
@handle_errors
def branches_cmd(ctx, base: str | None):
    """Show every local branch with its divergence and review progress."""
    store = get_store(ctx)
    base = _resolve_base(ctx, base)

    rows = [_load_row(store, base, info) for info in list_branches() if info.name != base]
    if not rows:
        console.print(f"[yellow]No branches besides {escape(base)}.[/yellow]")
        return

    table = Table(title=f"Branches vs {escape(base)}", show_header=True, header_style="bold cyan")
    table.add_column("Branch", style="bold")
    table.add_column("SHA", width=8)
    table.add_column("Author", max_width=20)
    table.add_column("Age")
    table.add_column("↑/↓", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("+/-", justify="right")
    table.add_column("Reviewed", justify="right")

    current = get_current_branch()
    for row in rows:
        detail = row.detail
        table.add_row(
            escape(f"* {row.info.name}" if row.info.name == current else row.info.name),
            row.info.last_commit_sha[:7],
            escape(row.info.last_commit_author),
            escape(row.info.last_commit_age),
            f"{detail.ahead}/{detail.behind}" if detail else "",
            str(detail.diff_stats.file_count) if detail else "",
            f"[green]+{detail.diff_stats.insertions}[/green] [red]-{detail.diff_stats.deletions}[/red]"
            if detail
            else "",
            _progress_cell(row.progress),
        )

    console.print(table)


@click.command("watch")
@click.option("--base", default=None, help="Branch to compare against. Defaults to the repository's default branch.")
@click.option("--interval", "-i", type=int, default=None, help="Seconds between refreshes. Overrides config file.")
@click.pass_context
@handle_errors
def watch_cmd(ctx, base: str | None, interval: int | None):
    """Keep printing the review progress of every branch until interrupted."""
    store = get_store(ctx)
    base = _resolve_base(ctx, base)
    interval = interval if interval is not None else int(get_config(ctx).get("watch_interval", 5))

    console.print("Watching for branches needing review (Ctrl+C to stop)...\n")
    last_head = None
    try:
        while True:
            head = get_head_sha()
            if head != last_head:
                console.print(f"[dim]HEAD at {head[:7]}[/dim]")
                last_head = head
            for info in list_branches():
                if info.name == base:
                    continue
                row = _load_row(store, base, info, with_detail=False)
                if row.progress is None:
                    continue
                mark = "[green]✓[/green]" if gate_passes(row.progress) else "○"
                console.print(f"{mark} {escape(info.name):40} {_progress_cell(row.progress)}")

            console.print(f"[dim]─── refreshing in {interval}s ───[/dim]\n")
            time.sleep(interval)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
