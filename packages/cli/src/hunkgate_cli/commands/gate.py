"""gate and commit commands.

``gate check`` is what the pre-commit hook runs: it syncs the default range
and exits 0 only when every hunk is reviewed (or there is nothing to review).
``commit`` applies the same check itself and then hands over to git commit.
"""

from __future__ import annotations

import click
from rich.console import Console

from hunkgate_cli.hooks import disable_gate, enable_gate
from hunkgate_cli.workflow import get_store, handle_errors, resolve_range, sync_scope
from hunkgate_core.gate import check_gate
from hunkgate_core.git.repo import find_hooks_dir, find_repo_root, run_commit

console = Console()
err_console = Console(stderr=True)


def _gate_summary(progress) -> str:
    return (
        f"{progress.reviewed}/{progress.total_hunks} hunks reviewed, "
        f"{progress.unreviewed} unreviewed, {progress.stale} stale"
    )


@click.group("gate")
def gate_group():
    """Enforce review completion before committing."""


@gate_group.command("check")
@click.argument("diff_range", required=False)
@click.pass_context
@handle_errors
def gate_check_cmd(ctx, diff_range: str | None):
    """Exit 0 if every hunk of DIFF_RANGE (default: HEAD) is reviewed, 1 otherwise."""
    store = get_store(ctx)
    diff_range = resolve_range(ctx, diff_range)

    files, progress = sync_scope(store, diff_range)
    if not files:
        console.print("[green]Review gate passed (no changes).[/green]")
        return

    if check_gate(store, diff_range):
        console.print("[green]Review gate passed.[/green]")
        return

    err_console.print("[red]Review gate: not all hunks reviewed.[/red]")
    err_console.print(f"  {_gate_summary(progress)}")
    err_console.print("  Run 'hunkgate review' to complete your review.")
    ctx.exit(1)


@gate_group.command("enable")
@handle_errors
def gate_enable_cmd():
    """Install the pre-commit hook that runs `hunkgate gate check`."""
    backup = enable_gate(find_hooks_dir())
    if backup is not None:
        console.print(f"[dim]Existing pre-commit hook saved to {backup}[/dim]")
    console.print(f"[green]Review gate enabled for {find_repo_root()} (pre-commit hook installed).[/green]")


@gate_group.command("disable")
@handle_errors
def gate_disable_cmd():
    """Remove the pre-commit hook, if hunkgate installed it."""
    if disable_gate(find_hooks_dir()):
        console.print("[green]Review gate disabled.[/green]")
    else:
        console.print("[yellow]No hunkgate pre-commit hook installed.[/yellow]")


@click.command(
    "commit",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.argument("git_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
@handle_errors
def commit_cmd(ctx, git_args: tuple[str, ...]):
    """Run `git commit GIT_ARGS...` once the review gate passes.

    \b
    Example:
      hunkgate commit -m "Fix parser"
    """
    store = get_store(ctx)
    diff_range = resolve_range(ctx, None)

    files, progress = sync_scope(store, diff_range)
    if not files:
        raise click.ClickException("No changes to commit.")

    if not check_gate(store, diff_range):
        raise click.ClickException(
            f"Review gate failed: {_gate_summary(progress)}. Run 'hunkgate review' to complete your review."
        )

    console.print("[green]Review gate passed, proceeding with commit.[/green]")
    returncode = run_commit(list(git_args))
    if returncode != 0:
        raise click.ClickException("git commit failed.")
