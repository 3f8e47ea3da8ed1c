"""Unified diff parser.

Turns raw ``git diff`` output into DiffFile / DiffHunk objects and gives
every hunk a content hash. The hash is the identity the review store keys on,
so its input (the canonical content string) must not depend on anything but
the hunk's own lines: not its position, not the file header, not the
platform's line endings.

The scan is one forward pass over the lines through LineCursor, with a single
line of lookback for recovering the path of a deleted file.
"""

from __future__ import annotations

import hashlib
import logging
import re

from hunkgate_core.errors import ParseError
from hunkgate_core.models import DiffFile, DiffHunk

logger = logging.getLogger(__name__)

_FILE_HEADER = "diff --git "
_BINARY_MARKERS = ("Binary files ", "GIT binary patch")
_NULL_PATH = "/dev/null"
# Prefixes of lines that belong to a hunk body. "\" is "\ No newline at end of file".
_BODY_PREFIXES = ("+", "-", " ", "\\")
_RANGE_RE = re.compile(r"^(\d+)(?:,(\d+))?$")


class LineCursor:
    """Forward-only cursor over the lines of a diff.

    ``previous`` is the last line handed out by advance(), which is all the
    lookback the parser needs.
    """

    def __init__(self, lines: list[str]):
        self._lines = lines
        self._pos = 0
        self.previous: str | None = None

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._lines)

    def peek(self) -> str | None:
        if self.exhausted:
            return None
        return self._lines[self._pos]

    def advance(self) -> str:
        if self.exhausted:
            raise IndexError("cursor exhausted")
        line = self._lines[self._pos]
        self._pos += 1
        self.previous = line
        return line


def split_lines(text: str) -> list[str]:
    """Split diff text on newlines.

    Only ``\\n`` and ``\\r\\n`` end a line; a trailing newline does not produce
    an extra empty line. str.splitlines() is not used because it also breaks
    on form feeds and other separators that can legitimately occur inside a
    diff line, which would change the content hash.
    """
    if not text:
        return []
    lines = text.split("\n")
    last = lines.pop()
    lines = [line[:-1] if line.endswith("\r") else line for line in lines]
    if last:
        lines.append(last)
    return lines


def compute_hash(content: str) -> str:
    """Lowercase hex SHA-256 of the hunk content's original bytes.

    Diff text is decoded with ``surrogateescape``, so bytes that are not valid
    UTF-8 come back unchanged here and two different bytes never share a hash.
    """
    return hashlib.sha256(content.encode("utf-8", "surrogateescape")).hexdigest()


def parse_range(text: str) -> tuple[int, int]:
    """Parse ``start[,count]``; an omitted count means 1."""
    match = _RANGE_RE.match(text)
    if match is None:
        raise ParseError(f"invalid hunk range: {text!r}")
    start, count = match.groups()
    return int(start), int(count) if count is not None else 1


def parse_hunk_header(line: str) -> tuple[int, int, int, int]:
    """Parse ``@@ -a[,b] +c[,d] @@ [section]`` into (a, b, c, d).

    Raises ParseError when the line is not a well-formed hunk header.
    """
    if not line.startswith("@@ "):
        raise ParseError(f"not a hunk header: {line!r}")
    body = line[3:]
    end = body.find(" @@")
    if end == -1:
        raise ParseError(f"unterminated hunk header: {line!r}")
    parts = body[:end].split(" ")
    if len(parts) < 2 or not parts[0].startswith("-") or not parts[1].startswith("+"):
        raise ParseError(f"malformed hunk header: {line!r}")
    old_start, old_count = parse_range(parts[0][1:])
    new_start, new_count = parse_range(parts[1][1:])
    return old_start, old_count, new_start, new_count


def parse_diff(text: str) -> list[DiffFile]:
    """Parse unified diff text into files with hashed hunks.

    Binary files and files that end up with no hunks (pure renames, mode
    changes) are left out. A malformed hunk is skipped; the rest of its file
    is still parsed.
    """
    cursor = LineCursor(split_lines(text))
    files: list[DiffFile] = []

    while not cursor.exhausted:
        line = cursor.advance()
        if not line.startswith(_FILE_HEADER):
            continue
        diff_file = _parse_file(cursor)
        if diff_file is not None and diff_file.hunks:
            files.append(diff_file)

    return files


def _parse_file(cursor: LineCursor) -> DiffFile | None:
    """Parse one file section; the cursor sits just past its ``diff --git`` line."""
    path = _read_file_header(cursor)
    if path is None:
        return None

    diff_file = DiffFile(path=path)
    while not cursor.exhausted:
        line = cursor.peek()
        if line.startswith(_FILE_HEADER):
            break
        cursor.advance()
        if not line.startswith("@@ "):
            continue
        try:
            old_start, old_count, new_start, new_count = parse_hunk_header(line)
        except ParseError as e:
            logger.debug("Skipping hunk in %s: %s", path, e)
            continue
        content = "\n".join(_read_hunk_body(cursor))
        diff_file.hunks.append(
            DiffHunk(
                old_start=old_start,
                old_count=old_count,
                new_start=new_start,
                new_count=new_count,
                content=content,
                content_hash=compute_hash(content),
            )
        )
    return diff_file


def _read_file_header(cursor: LineCursor) -> str | None:
    """Consume header lines up to ``+++`` and return the file path.

    Returns None for binary files and for sections without a ``+++`` line. In
    both cases the cursor is left on the next ``diff --git`` line (or at the
    end) so the caller resumes with the following file.
    """
    while not cursor.exhausted:
        line = cursor.peek()
        if line.startswith(_FILE_HEADER):
            return None
        if line.startswith(_BINARY_MARKERS):
            logger.debug("Skipping binary file section: %s", line)
            _skip_to_next_file(cursor)
            return None
        before = cursor.previous
        cursor.advance()
        if line.startswith("+++ "):
            return _destination_path(line, before)
    return None


def _destination_path(plus_line: str, minus_line: str | None) -> str | None:
    path = _strip_path(plus_line[4:])
    if path != _NULL_PATH:
        return path.removeprefix("b/")
    # Deleted file: the only name left is on the "---" line.
    if minus_line is None or not minus_line.startswith("--- "):
        return None
    source = _strip_path(minus_line[4:])
    if source == _NULL_PATH:
        return None
    return source.removeprefix("a/")


def _strip_path(raw: str) -> str:
    # git appends "\t" to names containing spaces; other tools append a timestamp.
    return raw.split("\t", 1)[0]


def _read_hunk_body(cursor: LineCursor) -> list[str]:
    body: list[str] = []
    while not cursor.exhausted:
        line = cursor.peek()
        if line.startswith("@@") or line.startswith(_FILE_HEADER):
            break
        if not line.startswith(_BODY_PREFIXES):
            break
        body.append(cursor.advance())
    return body


def _skip_to_next_file(cursor: LineCursor) -> None:
    while not cursor.exhausted and not cursor.peek().startswith(_FILE_HEADER):
        cursor.advance()
