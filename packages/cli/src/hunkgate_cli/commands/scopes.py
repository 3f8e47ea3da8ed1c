"""scopes command: every diff range with stored review state."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from hunkgate_cli.workflow import get_store, handle_errors
from hunkgate_core.gate import gate_passes

console = Console()


@click.command("scopes")
@click.pass_context
@handle_errors
def scopes_cmd(ctx):
    """List stored review scopes with the progress recorded at their last sync.

    Figures are not refreshed here; run `hunkgate status RANGE` to sync one.
    """
    store = get_store(ctx)

    scopes = store.list_scopes()
    if not scopes:
        console.print("[yellow]No review state stored yet.[/yellow]")
        return

    table = Table(title="Review scopes (as of last sync)", show_header=True, header_style="bold cyan")
    table.add_column("Scope", style="bold")
    table.add_column("Reviewed", justify="right")
    table.add_column("Unreviewed", justify="right")
    table.add_column("Stale", justify="right")
    table.add_column("Files left", justify="right")
    table.add_column("Gate", width=6)

    for scope in scopes:
        progress = store.progress(scope)
        gate = "[green]pass[/green]" if gate_passes(progress) else "[red]block[/red]"
        table.add_row(
            scope,
            f"{progress.reviewed}/{progress.total_hunks}",
            str(progress.unreviewed),
            str(progress.stale),
            f"{progress.files_remaining}/{progress.total_files}",
            gate,
        )

    console.print(table)
