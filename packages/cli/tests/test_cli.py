"""Tests for the CLI entry point and commands."""

import sqlite3
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from hunkgate_cli.cli import _build_store, main
from hunkgate_core.config import DEFAULT_CONFIG
from hunkgate_core.errors import GitCommandError, NotARepositoryError
from hunkgate_core.git.repo import BranchDetail, BranchInfo, DiffStats
from hunkgate_core.models import HunkStatus
from hunkgate_core.parser import compute_hash
from hunkgate_store.sqlite import SQLiteStore

DIFF_V1 = """\
diff --git a/app.py b/app.py
index 1111111..2222222 100644
--- a/app.py
+++ b/app.py
@@ -1,2 +1,2 @@
 import os
-x = 1
+x = 2
@@ -10,1 +10,2 @@
 def main():
+    run()
"""

DIFF_V2 = DIFF_V1.replace("+x = 2", "+x = 3")


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "review.db")


@pytest.fixture
def cli_env(mocker, db_path):
    """Patch load_config, _build_store and get_diff; returns the get_diff mock."""
    mocker.patch("hunkgate_core.config.load_config", return_value=dict(DEFAULT_CONFIG))
    mocker.patch("hunkgate_cli.cli._build_store", side_effect=lambda config: SQLiteStore(db_path=db_path))
    return mocker.patch("hunkgate_cli.workflow.get_diff", return_value=DIFF_V1)


def _invoke(*args, input=None):
    return CliRunner().invoke(main, list(args), input=input)


def _stored(db_path, scope="HEAD"):
    store = SQLiteStore(db_path=db_path)
    try:
        return store.progress(scope)
    finally:
        store.close()


# ---------------------------------------------------------------------------
# status / review
# ---------------------------------------------------------------------------


class TestStatus:
    def test_prints_progress(self, cli_env, db_path):
        result = _invoke("status")

        assert result.exit_code == 0
        assert "Reviewed:" in result.output
        assert "0/2" in result.output
        cli_env.assert_called_once_with("HEAD")
        assert _stored(db_path).unreviewed == 2

    def test_explicit_range(self, cli_env, db_path):
        result = _invoke("status", "main..HEAD")

        assert result.exit_code == 0
        cli_env.assert_called_once_with("main..HEAD")
        assert _stored(db_path, "main..HEAD").total_hunks == 2

    def test_review_status_flag(self, cli_env):
        result = _invoke("review", "--status")
        assert result.exit_code == 0
        assert "Unreviewed: 2" in result.output

    def test_default_range_from_config(self, mocker, db_path):
        config = dict(DEFAULT_CONFIG, default_range="develop..HEAD")
        mocker.patch("hunkgate_core.config.load_config", return_value=config)
        mocker.patch("hunkgate_cli.cli._build_store", side_effect=lambda cfg: SQLiteStore(db_path=db_path))
        get_diff = mocker.patch("hunkgate_cli.workflow.get_diff", return_value="")

        _invoke("status")

        get_diff.assert_called_once_with("develop..HEAD")


class TestReview:
    def test_no_changes(self, cli_env, db_path):
        cli_env.return_value = ""

        result = _invoke("review")

        assert result.exit_code == 0
        assert "No changes to review." in result.output
        assert _stored(db_path).total_hunks == 0

    def test_interactive_toggle_persists(self, cli_env, db_path):
        # enter the first file, toggle the first hunk, quit
        result = _invoke("review", input="\r q")

        assert result.exit_code == 0, result.output
        progress = _stored(db_path)
        assert progress.reviewed == 1
        assert progress.unreviewed == 1

    def test_interactive_approve_all(self, cli_env, db_path):
        result = _invoke("review", input="Ayq")

        assert result.exit_code == 0, result.output
        assert "All hunks reviewed." in result.output
        assert _stored(db_path).reviewed == 2

    def test_invalid_range_is_usage_error(self, mocker, db_path):
        mocker.patch("hunkgate_core.config.load_config", return_value=dict(DEFAULT_CONFIG))
        mocker.patch("hunkgate_cli.cli._build_store", side_effect=lambda cfg: SQLiteStore(db_path=db_path))
        run = mocker.patch("hunkgate_core.git.repo.subprocess.run")

        result = _invoke("review", "HEAD;rm -rf /")

        assert result.exit_code == 2
        assert "invalid git ref" in result.output
        run.assert_not_called()

    def test_git_failure_exits_1(self, cli_env):
        cli_env.side_effect = GitCommandError("git diff failed: fatal: bad revision")

        result = _invoke("status", "nope")

        assert result.exit_code == 1
        assert "bad revision" in result.output

    def test_unreadable_status_is_reported(self, cli_env, db_path):
        _invoke("approve", "HEAD")
        conn = sqlite3.connect(db_path)
        conn.execute("UPDATE hunks SET status='approved'")
        conn.commit()
        conn.close()

        result = _invoke("status")

        assert result.exit_code == 1
        assert "unreadable status" in result.output


# ---------------------------------------------------------------------------
# approve / reset / scopes
# ---------------------------------------------------------------------------


class TestApprove:
    def test_approve_all(self, cli_env, db_path):
        result = _invoke("approve", "HEAD")

        assert result.exit_code == 0
        assert "Approved 2 hunks" in result.output
        assert _stored(db_path).reviewed == 2

    def test_approve_file(self, cli_env, db_path):
        result = _invoke("approve", "HEAD", "--file", "app.py")

        assert result.exit_code == 0
        assert _stored(db_path).reviewed == 2

    def test_approve_unknown_file(self, cli_env, db_path):
        result = _invoke("approve", "HEAD", "--file", "other.py")

        assert result.exit_code == 0
        assert "Approved 0 hunks" in result.output
        assert _stored(db_path).reviewed == 0

    def test_approve_requires_range(self, cli_env):
        result = _invoke("approve")
        assert result.exit_code == 2

    def test_approve_no_changes(self, cli_env):
        cli_env.return_value = ""
        result = _invoke("approve", "HEAD")
        assert "No changes to approve." in result.output


class TestReset:
    def test_reset_with_yes(self, cli_env, db_path):
        _invoke("approve", "HEAD")

        result = _invoke("reset", "--yes")

        assert result.exit_code == 0
        assert "2 hunks" in result.output
        assert _stored(db_path).total_hunks == 0

    def test_reset_declined(self, cli_env, db_path):
        _invoke("approve", "HEAD")

        result = _invoke("reset", input="n\n")

        assert result.exit_code == 1
        assert _stored(db_path).reviewed == 2

    def test_reset_nothing_stored(self, cli_env):
        result = _invoke("reset", "-y")
        assert "No review state stored" in result.output


class TestScopes:
    def test_empty(self, cli_env):
        result = _invoke("scopes")
        assert "No review state stored yet." in result.output

    def test_lists_synced_scopes(self, cli_env):
        _invoke("status")
        _invoke("approve", "HEAD~1")

        result = _invoke("scopes")

        assert result.exit_code == 0
        assert "HEAD~1" in result.output
        assert "pass" in result.output
        assert "block" in result.output


# ---------------------------------------------------------------------------
# gate / commit
# ---------------------------------------------------------------------------


class TestGateCheck:
    def test_no_changes_passes(self, cli_env):
        cli_env.return_value = ""
        result = _invoke("gate", "check")
        assert result.exit_code == 0
        assert "no changes" in result.output

    def test_unreviewed_blocks(self, cli_env):
        result = _invoke("gate", "check")

        assert result.exit_code == 1
        assert "not all hunks reviewed" in result.output

    def test_all_reviewed_passes(self, cli_env):
        _invoke("approve", "HEAD")

        result = _invoke("gate", "check")

        assert result.exit_code == 0
        assert "Review gate passed." in result.output

    def test_edit_after_review_blocks(self, cli_env, db_path):
        """Approve everything, change one hunk, and the gate closes again."""
        _invoke("approve", "HEAD")
        cli_env.return_value = DIFF_V2

        result = _invoke("gate", "check")

        assert result.exit_code == 1
        progress = _stored(db_path)
        assert progress.stale == 1
        assert progress.unreviewed == 1
        assert progress.reviewed == 1

    def test_edit_to_non_utf8_byte_blocks(self, cli_env):
        """Two different undecodable bytes must not look like the same hunk."""
        latin1 = "diff --git a/n.txt b/n.txt\n--- a/n.txt\n+++ b/n.txt\n@@ -1 +1 @@\n-hello\n+caf{}\n"
        cli_env.return_value = latin1.format(b"\xe9".decode("utf-8", "surrogateescape"))
        _invoke("approve", "HEAD")
        cli_env.return_value = latin1.format(b"\xe8".decode("utf-8", "surrogateescape"))

        result = _invoke("gate", "check")

        assert result.exit_code == 1

    def test_moved_hunk_stays_reviewed(self, cli_env):
        _invoke("approve", "HEAD")
        cli_env.return_value = DIFF_V1.replace("@@ -10,1 +10,2 @@", "@@ -30,1 +42,2 @@")

        result = _invoke("gate", "check")

        assert result.exit_code == 0


class TestGateHook:
    def test_enable_and_disable(self, cli_env, mocker, tmp_path):
        hooks_dir = tmp_path / ".git" / "hooks"
        mocker.patch("hunkgate_cli.commands.gate.find_hooks_dir", return_value=hooks_dir)
        mocker.patch("hunkgate_cli.commands.gate.find_repo_root", return_value=tmp_path)

        result = _invoke("gate", "enable")
        assert result.exit_code == 0
        assert (hooks_dir / "pre-commit").exists()

        result = _invoke("gate", "disable")
        assert result.exit_code == 0
        assert "disabled" in result.output
        assert not (hooks_dir / "pre-commit").exists()

    def test_worktree_installs_into_shared_hooks_dir(self, cli_env, mocker, tmp_path):
        """From a linked worktree the hook goes where git runs it, not under worktrees/<name>."""
        shared = tmp_path / "repo" / ".git" / "hooks"
        run = mocker.patch("hunkgate_core.git.repo.subprocess.run")
        run.return_value = MagicMock(returncode=0, stdout=f"{shared}\n", stderr="")
        mocker.patch("hunkgate_cli.commands.gate.find_repo_root", return_value=tmp_path / "wt")

        result = _invoke("gate", "enable")

        assert result.exit_code == 0, result.output
        assert (shared / "pre-commit").exists()
        assert not (tmp_path / "repo" / ".git" / "worktrees").exists()
        args = run.call_args_list[0][0][0]
        assert args == ["git", "rev-parse", "--path-format=absolute", "--git-path", "hooks"]

    def test_disable_without_hook(self, cli_env, mocker, tmp_path):
        mocker.patch("hunkgate_cli.commands.gate.find_hooks_dir", return_value=tmp_path)
        result = _invoke("gate", "disable")
        assert "No hunkgate pre-commit hook" in result.output

    def test_enable_outside_repository(self, cli_env, mocker):
        mocker.patch("hunkgate_cli.commands.gate.find_hooks_dir", side_effect=NotARepositoryError())
        result = _invoke("gate", "enable")
        assert result.exit_code == 1
        assert "not in a git repository" in result.output


class TestCommit:
    def test_blocked_when_unreviewed(self, cli_env, mocker):
        run_commit = mocker.patch("hunkgate_cli.commands.gate.run_commit")

        result = _invoke("commit", "-m", "msg")

        assert result.exit_code == 1
        assert "Review gate failed" in result.output
        run_commit.assert_not_called()

    def test_commits_when_reviewed(self, cli_env, mocker):
        run_commit = mocker.patch("hunkgate_cli.commands.gate.run_commit", return_value=0)
        _invoke("approve", "HEAD")

        result = _invoke("commit", "-m", "Fix parser")

        assert result.exit_code == 0
        run_commit.assert_called_once_with(["-m", "Fix parser"])

    def test_git_commit_failure(self, cli_env, mocker):
        mocker.patch("hunkgate_cli.commands.gate.run_commit", return_value=1)
        _invoke("approve", "HEAD")

        result = _invoke("commit")

        assert result.exit_code == 1
        assert "git commit failed." in result.output

    def test_nothing_to_commit(self, cli_env, mocker):
        cli_env.return_value = ""
        run_commit = mocker.patch("hunkgate_cli.commands.gate.run_commit")

        result = _invoke("commit")

        assert result.exit_code == 1
        assert "No changes to commit." in result.output
        run_commit.assert_not_called()


# ---------------------------------------------------------------------------
# branches / watch
# ---------------------------------------------------------------------------


def _branch(name):
    return BranchInfo(
        name=name,
        last_commit_sha="abc1234def",
        last_commit_author="Al",
        last_commit_age="now",
        last_commit_timestamp=0,
    )


@pytest.fixture
def branch_git(mocker):
    mocker.patch("hunkgate_cli.commands.branches.get_current_branch", return_value="feat")
    mocker.patch("hunkgate_cli.commands.branches.get_head_sha", return_value="abc1234def")


class TestBranches:
    def test_lists_branches_except_base(self, cli_env, branch_git, mocker, db_path):
        mocker.patch(
            "hunkgate_cli.commands.branches.list_branches",
            return_value=[_branch("main"), _branch("feat")],
        )
        mocker.patch(
            "hunkgate_cli.commands.branches.get_branch_detail",
            return_value=BranchDetail(ahead=1, behind=0, diff_stats=DiffStats(1, 3, 1)),
        )

        result = _invoke("branches", "--base", "main")

        assert result.exit_code == 0, result.output
        assert "* feat" in result.output
        assert "0/2" in result.output
        cli_env.assert_called_once_with("main..feat")
        assert _stored(db_path, "main..feat").unreviewed == 2

    def test_failing_branch_keeps_its_row(self, cli_env, branch_git, mocker):
        mocker.patch(
            "hunkgate_cli.commands.branches.list_branches",
            return_value=[_branch("feat"), _branch("gone")],
        )
        mocker.patch(
            "hunkgate_cli.commands.branches.get_branch_detail",
            side_effect=[BranchDetail(), GitCommandError("git rev-list failed")],
        )
        mocker.patch("hunkgate_cli.commands.branches.detect_default_branch", return_value="main")

        result = _invoke("branches")

        assert result.exit_code == 0, result.output
        assert "feat" in result.output
        assert "gone" in result.output

    def test_bracketed_author_shown_verbatim(self, cli_env, branch_git, mocker):
        bot = BranchInfo(
            name="deps",
            last_commit_sha="abc1234def",
            last_commit_author="ci[bot]",
            last_commit_age="now",
            last_commit_timestamp=0,
        )
        mocker.patch("hunkgate_cli.commands.branches.list_branches", return_value=[bot])
        mocker.patch("hunkgate_cli.commands.branches.get_branch_detail", return_value=BranchDetail())

        result = _invoke("branches", "--base", "main")

        assert result.exit_code == 0, result.output
        assert "ci[bot]" in result.output

    def test_base_from_config(self, branch_git, mocker, db_path):
        mocker.patch("hunkgate_core.config.load_config", return_value=dict(DEFAULT_CONFIG, base_branch="develop"))
        mocker.patch("hunkgate_cli.cli._build_store", side_effect=lambda cfg: SQLiteStore(db_path=db_path))
        mocker.patch("hunkgate_cli.workflow.get_diff", return_value="")
        mocker.patch("hunkgate_cli.commands.branches.list_branches", return_value=[_branch("develop")])
        detect = mocker.patch("hunkgate_cli.commands.branches.detect_default_branch")

        result = _invoke("branches")

        assert "No branches besides develop." in result.output
        detect.assert_not_called()


class TestWatch:
    def test_single_round(self, cli_env, branch_git, mocker):
        mocker.patch(
            "hunkgate_cli.commands.branches.list_branches",
            return_value=[_branch("main"), _branch("feat")],
        )
        sleep = mocker.patch("hunkgate_cli.commands.branches.time.sleep", side_effect=KeyboardInterrupt)

        result = _invoke("watch", "--base", "main", "--interval", "7")

        assert result.exit_code == 0, result.output
        assert "HEAD at abc1234" in result.output
        assert "feat" in result.output
        sleep.assert_called_once_with(7)

    def test_interrupt_stops_cleanly(self, cli_env, branch_git, mocker):
        mocker.patch("hunkgate_cli.commands.branches.list_branches", return_value=[_branch("feat")])
        mocker.patch("hunkgate_cli.commands.branches.time.sleep", side_effect=KeyboardInterrupt)

        result = _invoke("watch", "--base", "main")

        assert result.exit_code == 0
        assert "Stopped." in result.output


# ---------------------------------------------------------------------------
# Store construction
# ---------------------------------------------------------------------------


class TestBuildStore:
    def test_explicit_store_path(self, tmp_path):
        db = tmp_path / "nested" / "review.db"
        store = _build_store(dict(DEFAULT_CONFIG, store_path=str(db)))
        try:
            assert isinstance(store, SQLiteStore)
            assert db.exists()
        finally:
            store.close()

    def test_default_path_inside_git_dir(self, tmp_path, mocker):
        mocker.patch("hunkgate_core.git.repo.find_git_dir", return_value=tmp_path / ".git")

        store = _build_store(dict(DEFAULT_CONFIG))
        store.close()

        assert (tmp_path / ".git" / "review-state" / "review.db").exists()

    def test_outside_repository_is_reported(self, mocker):
        mocker.patch("hunkgate_core.config.load_config", return_value=dict(DEFAULT_CONFIG))
        mocker.patch("hunkgate_core.git.repo.find_git_dir", side_effect=NotARepositoryError())

        result = _invoke("status")

        assert result.exit_code == 1
        assert "not in a git repository" in result.output

    def test_bad_config_is_usage_error(self, mocker):
        mocker.patch("hunkgate_core.config.load_config", side_effect=ValueError(".hunkgate.yml must contain a mapping"))

        result = _invoke("status")

        assert result.exit_code == 2
        assert "must contain a mapping" in result.output


def test_review_records_use_content_hash(cli_env, db_path):
    _invoke("status")
    store = SQLiteStore(db_path=db_path)
    try:
        hashes = {r.content_hash for r in store.list_records("HEAD")}
        assert compute_hash(" import os\n-x = 1\n+x = 2") in hashes
        assert store.get_status("HEAD", "app.py", compute_hash(" def main():\n+    run()")) is HunkStatus.UNREVIEWED
    finally:
        store.close()
