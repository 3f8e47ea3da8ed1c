"""approve and reset commands: bulk changes to a scope's review state."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from hunkgate_cli.workflow import get_store, handle_errors, resolve_range, sync_scope

console = Console()


@click.command("approve")
@click.argument("diff_range")
@click.option("--file", "-f", "file_path", default=None, help="Approve only the hunks of this file.")
@click.pass_context
@handle_errors
def approve_cmd(ctx, diff_range: str, file_path: str | None):
    """Mark every hunk of DIFF_RANGE reviewed without stepping through them.

    The diff is synced first, so hunks that appeared since the last review
    are approved too. Stale hunks are approved as well.
    """
    store = get_store(ctx)

    files, _ = sync_scope(store, diff_range)
    if not files:
        console.print("[yellow]No changes to approve.[/yellow]")
        return

    if file_path is not None:
        if not any(f.path == file_path for f in files):
            console.print(f"[yellow]{escape(file_path)} has no hunks in {diff_range}.[/yellow]")
        count = store.approve_file(diff_range, file_path)
    else:
        count = store.approve_all(diff_range)

    console.print(f"[green]Approved {count} hunks for {diff_range}[/green]")


@click.command("reset")
@click.argument("diff_range", required=False)
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
@handle_errors
def reset_cmd(ctx, diff_range: str | None, yes: bool):
    """Forget all review decisions for DIFF_RANGE (default: HEAD)."""
    store = get_store(ctx)
    diff_range = resolve_range(ctx, diff_range)

    if not yes:
        click.confirm(f"Discard all review state for {diff_range}?", abort=True)

    count = store.reset(diff_range)
    if count:
        console.print(f"[green]Review state reset for {diff_range} ({count} hunks).[/green]")
    else:
        console.print(f"[yellow]No review state stored for {diff_range}.[/yellow]")
