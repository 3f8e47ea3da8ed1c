"""pre-commit hook installation for the review gate.

The hook is a two-line shell script that defers to ``hunkgate gate check``.
A marker comment identifies hooks we wrote, so disable_gate() never removes
a hook somebody else installed.
"""

from __future__ import annotations

import logging
import shutil
import stat
from pathlib import Path

logger = logging.getLogger(__name__)

HOOK_MARKER = "# Installed by hunkgate"
HOOK_CONTENT = f"""\
#!/bin/sh
{HOOK_MARKER}
exec hunkgate gate check
"""


def hook_path(hooks_dir: Path) -> Path:
    return hooks_dir / "pre-commit"


def enable_gate(hooks_dir: Path) -> Path | None:
    """Install the pre-commit hook; return the backup path if one was made.

    An existing hook that is not ours is copied to ``pre-commit.backup``
    before being replaced.
    """
    path = hook_path(hooks_dir)
    path.parent.mkdir(parents=True, exist_ok=True)

    backup = None
    if path.exists() and HOOK_MARKER not in path.read_text(errors="replace"):
        backup = path.with_name("pre-commit.backup")
        shutil.copy2(path, backup)
        logger.debug("Backed up existing pre-commit hook to %s", backup)

    path.write_text(HOOK_CONTENT)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return backup


def disable_gate(hooks_dir: Path) -> bool:
    """Remove the hook if we installed it. Returns True when a hook was removed."""
    path = hook_path(hooks_dir)
    if not path.exists():
        return False
    if HOOK_MARKER not in path.read_text(errors="replace"):
        logger.debug("Leaving foreign pre-commit hook at %s untouched", path)
        return False
    path.unlink()
    return True
