"""CLI entry point for hunkgate.

Commands:
  review    review a diff hunk by hunk (or print its progress with --status)
  status    print review progress for a diff
  approve   mark every hunk (or every hunk of one file) reviewed
  reset     forget all review state for a diff
  scopes    list every diff range with stored review state
  branches  dashboard of local branches and their review progress
  watch     keep printing review progress of every branch
  gate      check the review gate, or install/remove the pre-commit hook
  commit    run git commit once the review gate passes
"""

from __future__ import annotations

import importlib.metadata
import logging
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from hunkgate_cli.commands.approve import approve_cmd, reset_cmd
from hunkgate_cli.commands.branches import branches_cmd, watch_cmd
from hunkgate_cli.commands.gate import commit_cmd, gate_group
from hunkgate_cli.commands.review import review_cmd, status_cmd
from hunkgate_cli.commands.scopes import scopes_cmd
from hunkgate_core.errors import GitError
from hunkgate_store.errors import StorageError

console = Console()

_DEFAULT_DB_DIR = "review-state"
_DEFAULT_DB_NAME = "review.db"


def _default_store_path() -> Path:
    """<git-dir>/review-state/review.db: per repository, outside the working tree."""
    from hunkgate_core.git.repo import find_git_dir

    return find_git_dir() / _DEFAULT_DB_DIR / _DEFAULT_DB_NAME


def _build_store(config: dict):
    """Open the review store for this invocation.

    One handle per command run, passed down through ctx.obj and closed when
    the command finishes.
    """
    from hunkgate_store.sqlite import SQLiteStore

    db_path = Path(config["store_path"]) if config.get("store_path") else _default_store_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return SQLiteStore(db_path=str(db_path), timeout=float(config.get("busy_timeout", 5.0)))


@click.group()
@click.version_option(
    version=importlib.metadata.version("hunkgate"),
    prog_name="hunkgate",
)
@click.option(
    "--config",
    "config_path",
    default=".hunkgate.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="HUNKGATE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Per-hunk review tracking for git diffs."""
    from hunkgate_core.config import load_config

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )

    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except (ValueError, yaml.YAMLError) as e:
        raise click.UsageError(str(e))

    try:
        store = _build_store(config)
    except (GitError, StorageError) as e:
        raise click.ClickException(str(e))

    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(status_cmd)
main.add_command(approve_cmd)
main.add_command(reset_cmd)
main.add_command(scopes_cmd)
main.add_command(branches_cmd)
main.add_command(watch_cmd)
main.add_command(gate_group)
main.add_command(commit_cmd)
