"""
Core domain models for push-digest.

These dataclasses describe reference changes, commits, and the parsed
per-file diff model. They intentionally avoid any direct git dependency
so they can be built from a real repository or from an in-memory graph
in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional

ZERO_REVISION = "0" * 40

ChangeKind = Literal["create", "update", "delete"]
ReferenceKind = Literal["branch", "annotated tag", "tag", "tracking branch"]
FileStatus = Literal["added", "modified", "deleted", "renamed", "copied", "type-changed"]
LineKind = Literal["added", "deleted", "context"]


def is_zero_revision(revision: Optional[str]) -> bool:
    """
    Return True for the all-zero sentinel git uses for a missing ref.

    Any width is accepted so SHA-256 repositories work as well.
    """

    return bool(revision) and set(revision) == {"0"}


def short_revision(revision: str) -> str:
    return revision[:7]


@dataclass(frozen=True)
class ReferenceChange:
    """
    One line of post-receive input: ``<old> <new> <refname>``.
    """

    old: str
    new: str
    name: str

    @classmethod
    def from_hook_line(cls, line: str) -> "ReferenceChange":
        parts = line.split()
        if len(parts) != 3:
            raise ValueError(f"expected '<old> <new> <ref>', got {line!r}")
        return cls(old=parts[0], new=parts[1], name=parts[2])


@dataclass
class LineChange:
    """
    A single line within a hunk.

    Added lines only carry new_lineno, deleted lines only old_lineno,
    and context lines carry both.
    """

    kind: LineKind
    text: str
    old_lineno: Optional[int] = None
    new_lineno: Optional[int] = None


@dataclass
class Hunk:
    """
    A contiguous block of changes in a single file.
    """

    old_start: int
    new_start: int
    header: str
    changes: List[LineChange] = field(default_factory=list)


@dataclass
class FileChange:
    """
    Everything a single ``diff --git`` section says about one file.

    similarity_percent is only set for renames and copies;
    dissimilarity_percent only for rewrites (``git diff -B``).
    """

    status: FileStatus
    old_path: Optional[str]
    new_path: Optional[str]
    similarity_percent: Optional[int] = None
    dissimilarity_percent: Optional[int] = None
    old_mode: Optional[str] = None
    new_mode: Optional[str] = None
    new_file_mode: Optional[str] = None
    deleted_file_mode: Optional[str] = None
    old_blob: Optional[str] = None
    new_blob: Optional[str] = None
    is_binary: bool = False
    hunks: List[Hunk] = field(default_factory=list)
    added_lines: int = 0
    deleted_lines: int = 0

    @property
    def path(self) -> str:
        """The file as it exists after the commit (before it, for deletions)."""

        return self.new_path or self.old_path or ""

    @property
    def mode_changed(self) -> bool:
        return self.old_mode is not None and self.new_mode is not None


@dataclass
class CommitRecord:
    """
    A commit announced by a push.

    parents[0] is the branch's own history; the remaining parents were
    brought in by a merge. merge_status collects one entry per merge
    commit through which this commit entered the push, in discovery
    order.
    """

    revision: str
    parents: List[str]
    author: str = ""
    author_email: str = ""
    date: Optional[datetime] = None
    subject: str = ""
    summary: str = ""
    files: List[FileChange] = field(default_factory=list)
    merge_status: List[str] = field(default_factory=list)

    @property
    def short_revision(self) -> str:
        return short_revision(self.revision)

    @property
    def first_parent(self) -> Optional[str]:
        return self.parents[0] if self.parents else None

    @property
    def other_parents(self) -> List[str]:
        return self.parents[1:]

    @property
    def is_merge(self) -> bool:
        return len(self.parents) >= 2

    @property
    def added_lines(self) -> int:
        return sum(f.added_lines for f in self.files)

    @property
    def deleted_lines(self) -> int:
        return sum(f.deleted_lines for f in self.files)

    def affected_paths(self, prefix: str = "") -> List[str]:
        """
        Return the distinct path components directly below prefix that
        this commit touches, in diff order.
        """

        prefixes = [p for p in prefix.split("/") if p]
        results: List[str] = []
        for file in self.files:
            parts = [p for p in file.path.split("/") if p]
            if len(prefixes) < len(parts) and parts[: len(prefixes)] == prefixes:
                component = parts[len(prefixes)]
                if component not in results:
                    results.append(component)
        return results


@dataclass
class PushResult:
    """
    The structured outcome of processing one reference change.
    """

    reference: str
    reference_kind: ReferenceKind
    change_kind: ChangeKind
    old_revision: str
    new_revision: str
    summary_text: str
    commits: List[CommitRecord] = field(default_factory=list)
    is_fast_forward: bool = False
