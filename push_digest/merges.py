"""
Discovery of commits brought into a push by merge commits.

The revision list of a push only follows what ``rev-list`` reports as
new. When that list contains merges, the commits that came in through
the merged side branches need to be shown as well, right before the
merge that brought them in and annotated with that merge. For every
merge commit M each parent is walked along its first-parent chain
until the walk reaches a base revision: the old tip of the pushed
branch, or the merge base of the parent with M's first grandparent.
Merges met on the way are traversed first, and their own merge bases
then widen the set of base revisions for the rest of the walk.

The walks use an explicit stack instead of recursion, and commits live
in an index-addressed arena with a linked ordering so an insertion
before any commit is O(1).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from .domain import CommitRecord
from .oracle import RevisionOracle

LOG = logging.getLogger(__name__)

CommitLoader = Callable[[str], CommitRecord]


def merge_message(merge: CommitRecord) -> str:
    return f"Merged {merge.short_revision}: {merge.subject}"


class CommitArena:
    """
    Commits of one push, addressed by index, kept in presentation order.

    Records are only ever appended to the arena; ordering is a doubly
    linked list over arena indices.
    """

    def __init__(self, commits: List[CommitRecord]) -> None:
        self.records: List[CommitRecord] = []
        self.index: Dict[str, int] = {}
        self._prev: List[int] = []
        self._next: List[int] = []
        self._head = -1
        self._tail = -1
        for record in commits:
            self.append(record)

    def __len__(self) -> int:
        return len(self.records)

    def get(self, revision: str) -> Optional[CommitRecord]:
        position = self.index.get(revision)
        return None if position is None else self.records[position]

    def _add(self, record: CommitRecord) -> int:
        if record.revision in self.index:
            raise ValueError(f"commit {record.revision} is already known")
        position = len(self.records)
        self.records.append(record)
        self.index[record.revision] = position
        self._prev.append(-1)
        self._next.append(-1)
        return position

    def append(self, record: CommitRecord) -> None:
        position = self._add(record)
        if self._tail == -1:
            self._head = position
        else:
            self._next[self._tail] = position
            self._prev[position] = self._tail
        self._tail = position

    def insert_before(self, record: CommitRecord, descendant: str) -> None:
        anchor = self.index[descendant]
        position = self._add(record)
        previous = self._prev[anchor]
        self._prev[position] = previous
        self._next[position] = anchor
        self._prev[anchor] = position
        if previous == -1:
            self._head = position
        else:
            self._next[previous] = position

    def ordered(self) -> List[CommitRecord]:
        result: List[CommitRecord] = []
        position = self._head
        while position != -1:
            result.append(self.records[position])
            position = self._next[position]
        return result


@dataclass
class _WalkFrame:
    """
    Progress of the walks below one merge commit.
    """

    merge: CommitRecord
    first_grand_parent: Optional[str]
    parent_index: int = 0
    revision: Optional[str] = None
    descendant: str = ""
    base_revisions: List[str] = field(default_factory=list)
    pending_merge: Optional[CommitRecord] = None

    @property
    def on_first_parent(self) -> bool:
        return self.parent_index == 0


class MergeTraversal:
    """
    Traverses the merges of one push.

    The arena and the set of traversed merges belong to a single push;
    instances must not be shared between pushes.
    """

    def __init__(
        self,
        arena: CommitArena,
        old_revision: str,
        oracle: RevisionOracle,
        load_commit: CommitLoader,
    ) -> None:
        self.arena = arena
        self.old_revision = old_revision
        self.oracle = oracle
        self.load_commit = load_commit
        self.traversed: Set[str] = set()

    def _merge_base(self, a: Optional[str], b: Optional[str]) -> Optional[str]:
        if a is None or b is None:
            return None
        return self.oracle.merge_base(a, b)

    def _new_frame(self, merge: CommitRecord) -> _WalkFrame:
        parents = self.oracle.parent_list(merge.first_parent) if merge.first_parent else []
        frame = _WalkFrame(merge=merge, first_grand_parent=parents[0] if parents else None)
        self._start_parent(frame)
        return frame

    def _start_parent(self, frame: _WalkFrame) -> None:
        revision = frame.merge.parents[frame.parent_index]
        frame.revision = revision
        frame.descendant = frame.merge.revision
        frame.base_revisions = [self.old_revision]
        base = self._merge_base(frame.first_grand_parent, revision)
        if base is not None:
            frame.base_revisions.append(base)

    def _visit(self, frame: _WalkFrame, revision: str) -> CommitRecord:
        record = self.arena.get(revision)
        if record is None:
            record = self.load_commit(revision)
            self.arena.insert_before(record, frame.descendant)
            LOG.debug(
                "Inserted %s before %s (via merge %s)",
                record.short_revision,
                frame.descendant[:7],
                frame.merge.short_revision,
            )

        if not frame.on_first_parent:
            message = merge_message(frame.merge)
            if message not in record.merge_status:
                record.merge_status.append(message)
        return record

    def traverse(self, merge: CommitRecord) -> None:
        """
        Insert and annotate everything merge brought in.
        """

        if merge.revision in self.traversed:
            return

        stack = [self._new_frame(merge)]
        while stack:
            frame = stack[-1]

            if frame.pending_merge is not None:
                # The nested merge is done; its first-parent history
                # below the grandparent merge base is not ours to walk.
                nested = frame.pending_merge
                frame.pending_merge = None
                base = self._merge_base(frame.first_grand_parent, nested.first_parent)
                if base is not None:
                    frame.base_revisions.append(base)
                frame.descendant = nested.revision
                frame.revision = nested.first_parent
                continue

            if frame.revision is None or frame.revision in frame.base_revisions:
                frame.parent_index += 1
                if frame.parent_index < len(frame.merge.parents):
                    self._start_parent(frame)
                else:
                    self.traversed.add(frame.merge.revision)
                    stack.pop()
                continue

            record = self._visit(frame, frame.revision)
            if record.is_merge:
                frame.pending_merge = record
                if record.revision not in self.traversed and all(
                    f.merge.revision != record.revision for f in stack
                ):
                    stack.append(self._new_frame(record))
                continue

            frame.descendant = record.revision
            frame.revision = record.first_parent


def traverse_merges(
    commits: List[CommitRecord],
    old_revision: str,
    oracle: RevisionOracle,
    load_commit: CommitLoader,
) -> List[CommitRecord]:
    """
    Expand the commit list of a push with commits brought in by merges.

    commits is updated in place and also returned. Merges are handled
    newest first. Running this again on its own output changes nothing.
    """

    arena = CommitArena(commits)
    traversal = MergeTraversal(arena, old_revision, oracle, load_commit)

    for record in reversed(list(commits)):
        if record.is_merge:
            traversal.traverse(record)

    added = len(arena) - len(commits)
    if added:
        LOG.info("Merges brought in %d additional commits", added)
    commits[:] = arena.ordered()
    return commits
