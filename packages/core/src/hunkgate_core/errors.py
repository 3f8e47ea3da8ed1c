"""Error kinds raised by hunkgate_core.

Storage errors live in hunkgate_store so the core stays free of persistence
concerns. The CLI maps every kind to an exit code and a message.
"""

from __future__ import annotations


class ParseError(ValueError):
    """A diff fragment could not be parsed.

    Never escapes parse_diff(): the parser skips the offending hunk and keeps
    going. Raised directly only by the lower-level helpers.
    """


class GitError(Exception):
    """Base class for failures talking to git."""


class NotARepositoryError(GitError):
    def __init__(self, message: str = "not in a git repository"):
        super().__init__(message)


class GitCommandError(GitError):
    """A git subprocess exited non-zero or could not be started."""


class InvalidRefError(GitError):
    """A ref or range string contains characters git refs never use.

    Raised before any subprocess is started.
    """

    def __init__(self, ref: str, reason: str):
        self.ref = ref
        self.reason = reason
        super().__init__(f"invalid git ref {ref!r}: {reason}")
