"""review and status commands."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from hunkgate_cli.session import ConfirmAction, Filter, Mode, ReviewSession
from hunkgate_cli.workflow import get_store, handle_errors, print_progress, resolve_range, sync_scope
from hunkgate_core.models import HunkStatus

console = Console()

_STATUS_STYLE = {
    HunkStatus.REVIEWED: "green",
    HunkStatus.UNREVIEWED: "yellow",
    HunkStatus.STALE: "red",
}
_STATUS_MARK = {
    HunkStatus.REVIEWED: "✓",
    HunkStatus.UNREVIEWED: "○",
    HunkStatus.STALE: "!",
}

# click.getchar() returns raw characters; the session speaks in key names.
_KEY_NAMES = {
    "\r": "enter",
    "\n": "enter",
    "\x1b": "esc",
    "\t": "n",
    "\x1b[Z": "p",
    "\x1b[A": "k",
    "\x1b[B": "j",
}

_HELP = {
    Mode.OVERVIEW: [
        ("j / k", "next / previous file"),
        ("enter", "review the selected file"),
        ("A", "approve every hunk"),
        ("?", "this help"),
        ("q / esc", "quit"),
    ],
    Mode.HUNKS: [
        ("j / k", "next / previous hunk"),
        ("n / p", "next / previous file"),
        ("space", "toggle reviewed"),
        ("u / s / a", "show unreviewed / stale / all hunks"),
        ("F", "approve every hunk in this file"),
        ("A", "approve every hunk"),
        ("esc", "back to the file list"),
        ("q", "quit"),
    ],
}


def _printable(text: str) -> str:
    # Bytes that were not UTF-8 are kept as surrogates for hashing; show them as U+FFFD.
    return text.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


@click.command("review")
@click.argument("diff_range", required=False)
@click.option("--status", "-s", "status_only", is_flag=True, help="Print progress instead of reviewing.")
@click.pass_context
@handle_errors
def review_cmd(ctx, diff_range: str | None, status_only: bool):
    """Review a diff hunk by hunk.

    DIFF_RANGE is anything `git diff` accepts as a revision range, for
    example `main..HEAD`. Defaults to `HEAD` (all uncommitted changes).
    Review decisions survive later edits as long as the hunk's content is
    unchanged, even if it moves to other line numbers.
    """
    store = get_store(ctx)
    diff_range = resolve_range(ctx, diff_range)

    files, progress = sync_scope(store, diff_range)
    if not files:
        console.print("[yellow]No changes to review.[/yellow]")
        return

    if status_only:
        print_progress(diff_range, progress)
        return

    session = ReviewSession(store, diff_range, files)
    run_session(session)
    print_progress(diff_range, store.progress(diff_range))


@click.command("status")
@click.argument("diff_range", required=False)
@click.pass_context
@handle_errors
def status_cmd(ctx, diff_range: str | None):
    """Print review progress for DIFF_RANGE (default: HEAD)."""
    ctx.invoke(review_cmd, diff_range=diff_range, status_only=True)


def run_session(session: ReviewSession) -> None:
    """Render, read one key, repeat until the session quits."""
    while not session.finished:
        console.clear()
        render(session)
        char = click.getchar()
        session.handle_key(_KEY_NAMES.get(char, char))


def render(session: ReviewSession) -> None:
    if session.mode is Mode.HELP:
        _render_help(session)
        return

    _render_files(session)
    if session.mode in (Mode.HUNKS, Mode.CONFIRM):
        _render_hunk(session)

    if session.mode is Mode.CONFIRM:
        target = "this file" if session.pending is ConfirmAction.APPROVE_FILE else "every file"
        console.print(f"[bold yellow]Approve all hunks in {target}? \\[y/N][/bold yellow]")
    elif session.message:
        console.print(f"[dim]{escape(session.message)}[/dim]")

    filter_label = {Filter.ALL: "All", Filter.UNREVIEWED: "Unreviewed", Filter.STALE: "Stale"}[session.filter]
    console.print(f"[dim]{session.scope} · filter: {filter_label} · ? for help[/dim]")


def _render_files(session: ReviewSession) -> None:
    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("", width=1)
    table.add_column("File")
    table.add_column("Reviewed", justify="right")

    for index in session.visible_files():
        diff_file = session.files[index]
        reviewed = sum(1 for h in diff_file.hunks if h.status is HunkStatus.REVIEWED)
        marker = "›" if index == session.selected_file else ""
        path = Text(_printable(diff_file.path), style="green" if reviewed == len(diff_file.hunks) else "")
        table.add_row(marker, path, f"{reviewed}/{len(diff_file.hunks)}")
    console.print(table)


def _render_hunk(session: ReviewSession) -> None:
    hunk = session.current_hunk()
    diff_file = session.current_file()
    if hunk is None or diff_file is None:
        console.print("[dim]No hunks match the current filter.[/dim]")
        return

    body = Text()
    for line in _printable(hunk.content).split("\n"):
        if line.startswith("+"):
            body.append(line + "\n", style="green")
        elif line.startswith("-"):
            body.append(line + "\n", style="red")
        else:
            body.append(line + "\n")

    visible = session.visible_hunks()
    style = _STATUS_STYLE[hunk.status]
    title = (
        f"{escape(_printable(diff_file.path))}  {hunk.header}  "
        f"[{style}]{_STATUS_MARK[hunk.status]} {hunk.status.label}[/{style}]  "
        f"({visible.index(session.selected_hunk) + 1}/{len(visible)})"
    )
    console.print(Panel(body, title=title, title_align="left"))


def _render_help(session: ReviewSession) -> None:
    table = Table(title="Keys", show_header=False, box=None)
    table.add_column("Key", style="bold")
    table.add_column("Action")
    for key, action in _HELP.get(session.return_mode, _HELP[Mode.OVERVIEW]):
        table.add_row(key, action)
    console.print(table)
    console.print("[dim]Press any key to return.[/dim]")
