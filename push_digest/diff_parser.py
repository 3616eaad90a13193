"""
Unified diff parsing for push-digest.

The parser converts the raw output of ``git log -p`` for a single
commit into FileChange records defined in push_digest.domain.

Parsing happens in two steps. tokenize_file_diff() classifies every
line of one ``diff --git`` section into a DiffToken in a single pass;
_FileChangeBuilder then consumes the token stream with a two-state
machine (awaiting extended headers, then inside hunks). Input is
expected to come straight from git, so an extended header the
tokenizer does not know is an error rather than something to guess
about.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .domain import FileChange, FileStatus, Hunk, LineChange
from .errors import DiffParseError, MalformedHunkError, UnrecognizedDiffHeaderError

LOG = logging.getLogger(__name__)

DIFF_HEADER_PREFIX = "diff --git "
NO_NEWLINE_MARKER = "\\ No newline at end of file"

_HUNK_HEADER_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))?"
    r" \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))?"
    r" @@(?P<section>.*)$"
)

# Extended header lines, tried in order. The token kind is the key the
# builder dispatches on.
_EXTENDED_HEADERS: Sequence[Tuple[str, "re.Pattern[str]"]] = (
    ("old mode", re.compile(r"^old mode (?P<value>[0-7]+)$")),
    ("new mode", re.compile(r"^new mode (?P<value>[0-7]+)$")),
    ("deleted file mode", re.compile(r"^deleted file mode (?P<value>[0-7]+)$")),
    ("new file mode", re.compile(r"^new file mode (?P<value>[0-7]+)$")),
    ("copy from", re.compile(r"^copy from (?P<value>.+)$")),
    ("copy to", re.compile(r"^copy to (?P<value>.+)$")),
    ("rename from", re.compile(r"^rename from (?P<value>.+)$")),
    ("rename to", re.compile(r"^rename to (?P<value>.+)$")),
    ("similarity index", re.compile(r"^similarity index (?P<value>\d+)%$")),
    ("dissimilarity index", re.compile(r"^dissimilarity index (?P<value>\d+)%$")),
    (
        "index",
        re.compile(r"^index (?P<value>[0-9a-f]+)\.\.(?P<extra>[0-9a-f]+)(?: [0-7]+)?$"),
    ),
    ("binary files", re.compile(r"^Binary files (?P<value>.+) and (?P<extra>.+) differ$")),
    ("binary patch", re.compile(r"^GIT binary patch$")),
    ("old file", re.compile(r"^--- (?P<value>.+)$")),
    ("new file", re.compile(r"^\+\+\+ (?P<value>.+)$")),
)

_C_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "t": 0x09,
    "n": 0x0A,
    "v": 0x0B,
    "f": 0x0C,
    "r": 0x0D,
    '"': 0x22,
    "\\": 0x5C,
}

_FILE_TYPE_MASK = 0o170000


@dataclass(frozen=True)
class DiffToken:
    """
    One classified line of a file diff.

    kind is ``diff`` for the section header, one of the extended
    header kinds above, ``hunk`` for an ``@@`` line, ``added``,
    ``deleted`` or ``context`` for body lines, and ``no newline`` or
    ``binary data`` for lines that carry no source text.
    """

    kind: str
    value: str = ""
    extra: str = ""
    line: str = ""


def unquote_path(path: str) -> str:
    """
    Undo git's C-style quoting of a path.

    Unquoted input is returned as is. Octal escapes are collected as
    raw bytes and decoded as UTF-8 so multi-byte names survive.
    """

    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path

    body = path[1:-1]
    buffer = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char != "\\":
            buffer.extend(char.encode("utf-8"))
            i += 1
            continue

        if i + 1 >= len(body):
            raise DiffParseError(f"dangling escape in quoted path {path!r}")
        escaped = body[i + 1]
        if escaped in "0123":
            octal = body[i + 1 : i + 4]
            if len(octal) != 3 or any(c not in "01234567" for c in octal):
                raise DiffParseError(f"bad octal escape in quoted path {path!r}")
            buffer.append(int(octal, 8))
            i += 4
        elif escaped in _C_ESCAPES:
            buffer.append(_C_ESCAPES[escaped])
            i += 2
        else:
            raise DiffParseError(f"unknown escape \\{escaped} in quoted path {path!r}")

    return buffer.decode("utf-8", errors="replace")


def _strip_prefix(path: str, prefix: str) -> str:
    return path[len(prefix) :] if path.startswith(prefix) else path


def _split_quoted(text: str) -> Tuple[str, str]:
    """
    Split a leading quoted token off text, honoring backslash escapes.
    """

    i = 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return text[: i + 1], text[i + 1 :]
        i += 1
    raise DiffParseError(f"unterminated quoted path in {text!r}")


def parse_diff_header(line: str) -> Tuple[str, str]:
    """
    Return the (old, new) paths named on a ``diff --git`` line.

    Unquoted paths may contain spaces; in that case the line is only
    unambiguous when both sides name the same file, which is the case
    for everything except renames and copies. Those carry explicit
    ``rename from``/``rename to`` headers that override the result.
    """

    if not line.startswith(DIFF_HEADER_PREFIX):
        raise UnrecognizedDiffHeaderError(f"corrupted diff header: {line!r}")
    rest = line[len(DIFF_HEADER_PREFIX) :]

    if rest.startswith('"'):
        first, remainder = _split_quoted(rest)
        second = remainder.lstrip(" ")
        old_raw, new_raw = unquote_path(first), unquote_path(second)
    elif rest.endswith('"') and ' "' in rest:
        index = rest.rindex(' "')
        old_raw, new_raw = rest[:index], unquote_path(rest[index + 1 :])
    else:
        half = (len(rest) - 1) // 2
        if len(rest) % 2 == 1 and rest[half] == " " and rest[:half][2:] == rest[half + 1 :][2:]:
            old_raw, new_raw = rest[:half], rest[half + 1 :]
        elif " b/" in rest:
            index = rest.index(" b/")
            old_raw, new_raw = rest[:index], rest[index + 1 :]
        else:
            raise UnrecognizedDiffHeaderError(f"corrupted diff header: {line!r}")

    if not (old_raw.startswith("a/") and new_raw.startswith("b/")):
        raise UnrecognizedDiffHeaderError(f"corrupted diff header: {line!r}")
    return old_raw[2:], new_raw[2:]


def split_file_diffs(raw_diff: str) -> List[List[str]]:
    """
    Split raw diff text into per-file line lists.

    Each list starts with its ``diff --git`` line. Anything before the
    first such line (commit headers, the blank line ``git log
    --pretty=format:`` emits) is dropped.
    """

    # str.splitlines() would also break on form feeds and other
    # separators that can legitimately appear inside source lines.
    lines = raw_diff.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    sections: List[List[str]] = []
    for line in lines:
        if line.startswith(DIFF_HEADER_PREFIX):
            sections.append([line])
        elif sections:
            sections[-1].append(line)
    return sections


def _tokenize_extended_header(line: str) -> DiffToken:
    for kind, pattern in _EXTENDED_HEADERS:
        match = pattern.match(line)
        if match:
            groups = match.groupdict()
            return DiffToken(
                kind=kind,
                value=groups.get("value") or "",
                extra=groups.get("extra") or "",
                line=line,
            )
    raise UnrecognizedDiffHeaderError(f"unrecognized diff header line: {line!r}")


def tokenize_file_diff(lines: Sequence[str]) -> Iterator[DiffToken]:
    """
    Classify the lines of one file diff.

    Lines are read as extended headers until the first hunk header;
    from then on they are read as hunk content, so a deleted line that
    happens to start with ``--`` is never mistaken for a header.
    """

    if not lines:
        return
    yield DiffToken(kind="diff", line=lines[0])

    in_body = False
    in_binary_patch = False
    for line in lines[1:]:
        if in_binary_patch:
            yield DiffToken(kind="binary data", line=line)
            continue

        if line.startswith("@@"):
            in_body = True
            yield DiffToken(kind="hunk", line=line)
            continue

        if not in_body:
            token = _tokenize_extended_header(line)
            if token.kind == "binary patch":
                in_binary_patch = True
            yield token
            continue

        if line.startswith(NO_NEWLINE_MARKER[:2]):
            yield DiffToken(kind="no newline", line=line)
        elif line.startswith("+"):
            yield DiffToken(kind="added", value=line[1:], line=line)
        elif line.startswith("-"):
            yield DiffToken(kind="deleted", value=line[1:], line=line)
        elif line.startswith(" "):
            yield DiffToken(kind="context", value=line[1:], line=line)
        else:
            # An empty line inside a hunk is a context line whose leading
            # space was stripped along the way.
            yield DiffToken(kind="context", value=line, line=line)


def _parse_hunk_header(header: str) -> Tuple[int, int]:
    match = _HUNK_HEADER_RE.match(header)
    if not match:
        raise MalformedHunkError(f"malformed hunk header: {header!r}")
    return int(match.group("old_start")), int(match.group("new_start"))


class _FileChangeBuilder:
    """
    Consumes the token stream of one file diff.

    The builder reads extended headers until the first hunk header and
    hunk content from then on; the current hunk doubles as the state.
    Header tokens are only valid before it exists, line tokens only
    after.
    """

    def __init__(self) -> None:
        self.status: FileStatus = "modified"
        self.old_path: Optional[str] = None
        self.new_path: Optional[str] = None
        self.change = FileChange(status="modified", old_path=None, new_path=None)
        self.hunk: Optional[Hunk] = None
        self.old_lineno = 0
        self.new_lineno = 0

    def feed(self, token: DiffToken) -> None:
        if self.hunk is None:
            self._feed_header(token)
        else:
            self._feed_body(self.hunk, token)

    def _feed_header(self, token: DiffToken) -> None:
        change = self.change
        kind = token.kind

        if kind == "diff":
            self.old_path, self.new_path = parse_diff_header(token.line)
        elif kind == "new file mode":
            change.new_file_mode = token.value
            self.status = "added"
        elif kind == "deleted file mode":
            change.deleted_file_mode = token.value
            self.status = "deleted"
        elif kind == "old mode":
            change.old_mode = token.value
        elif kind == "new mode":
            change.new_mode = token.value
        elif kind in ("rename from", "copy from"):
            self.old_path = unquote_path(token.value)
            self.status = "renamed" if kind == "rename from" else "copied"
        elif kind in ("rename to", "copy to"):
            self.new_path = unquote_path(token.value)
            self.status = "renamed" if kind == "rename to" else "copied"
        elif kind == "similarity index":
            change.similarity_percent = int(token.value)
        elif kind == "dissimilarity index":
            change.dissimilarity_percent = int(token.value)
        elif kind == "index":
            change.old_blob, change.new_blob = token.value, token.extra
        elif kind == "binary files":
            change.is_binary = True
            if token.value == "/dev/null":
                self.status = "added"
            elif token.extra == "/dev/null":
                self.status = "deleted"
        elif kind == "binary patch":
            change.is_binary = True
        elif kind == "binary data":
            pass
        elif kind == "old file":
            path = token.value.rstrip("\t")
            if path == "/dev/null":
                self.status = "added"
            else:
                self.old_path = _strip_prefix(unquote_path(path), "a/")
        elif kind == "new file":
            path = token.value.rstrip("\t")
            if path == "/dev/null":
                self.status = "deleted"
            else:
                self.new_path = _strip_prefix(unquote_path(path), "b/")
        elif kind == "hunk":
            self._start_hunk(token.line)
        else:
            raise UnrecognizedDiffHeaderError(f"unexpected {kind!r} line: {token.line!r}")

    def _start_hunk(self, header: str) -> None:
        old_start, new_start = _parse_hunk_header(header)
        self.hunk = Hunk(old_start=old_start, new_start=new_start, header=header)
        self.change.hunks.append(self.hunk)
        self.old_lineno = old_start
        self.new_lineno = new_start

    def _feed_body(self, hunk: Hunk, token: DiffToken) -> None:
        kind = token.kind
        if kind == "hunk":
            self._start_hunk(token.line)
            return
        if kind == "no newline":
            return

        if kind == "added":
            hunk.changes.append(
                LineChange(kind="added", text=token.value, new_lineno=self.new_lineno)
            )
            self.new_lineno += 1
            self.change.added_lines += 1
        elif kind == "deleted":
            hunk.changes.append(
                LineChange(kind="deleted", text=token.value, old_lineno=self.old_lineno)
            )
            self.old_lineno += 1
            self.change.deleted_lines += 1
        elif kind == "context":
            hunk.changes.append(
                LineChange(
                    kind="context",
                    text=token.value,
                    old_lineno=self.old_lineno,
                    new_lineno=self.new_lineno,
                )
            )
            self.old_lineno += 1
            self.new_lineno += 1
        else:
            raise MalformedHunkError(f"unexpected {kind!r} line inside hunk: {token.line!r}")

    def finish(self) -> FileChange:
        change = self.change
        status = self.status
        if (
            status == "modified"
            and change.mode_changed
            and (int(change.old_mode, 8) & _FILE_TYPE_MASK)
            != (int(change.new_mode, 8) & _FILE_TYPE_MASK)
        ):
            status = "type-changed"

        change.status = status
        change.old_path = None if status == "added" else self.old_path
        change.new_path = None if status == "deleted" else self.new_path
        return change


def parse_file_diff(lines: Sequence[str]) -> FileChange:
    """
    Parse one ``diff --git`` section into a FileChange.
    """

    builder = _FileChangeBuilder()
    for token in tokenize_file_diff(lines):
        builder.feed(token)
    return builder.finish()


def parse_commit_diff(
    raw_diff: str,
    revision: Optional[str] = None,
    skip_malformed: bool = False,
) -> List[FileChange]:
    """
    Parse the diff of one commit into FileChange records, in diff order.

    With skip_malformed, a file section that fails to parse is logged
    and left out instead of failing the whole commit.
    """

    files: List[FileChange] = []
    for section in split_file_diffs(raw_diff):
        try:
            files.append(parse_file_diff(section))
        except DiffParseError as exc:
            if not skip_malformed:
                raise
            LOG.warning(
                "Skipping unparsable file diff in %s (%s): %s",
                revision or "commit",
                section[0],
                exc,
            )
    return files
