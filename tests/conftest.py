from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import pytest

from push_digest.errors import RevisionNotFoundError
from push_digest.oracle import RevisionOracle, TagDetails


@dataclass
class _Commit:
    parents: List[str]
    subject: str
    author: str
    diff: str
    seq: int
    body: str = ""


@dataclass
class _Tag:
    target: str
    tagger: str
    message: str
    seq: int
    object_type: str = "commit"


@dataclass
class GraphOracle(RevisionOracle):
    """
    In-memory commit graph. Revisions are plain names such as "A" so
    tests can assert on them directly; creation order stands in for
    commit time.
    """

    commits: Dict[str, _Commit] = field(default_factory=dict)
    tags: Dict[str, _Tag] = field(default_factory=dict)
    refs: Dict[str, str] = field(default_factory=dict)
    seq: int = 0

    def commit(
        self,
        name: str,
        parents: Sequence[str] = (),
        subject: Optional[str] = None,
        author: str = "Alice",
        diff: str = "",
        branch: Optional[str] = None,
    ) -> str:
        self.seq += 1
        self.commits[name] = _Commit(
            parents=list(parents),
            subject=subject or f"commit {name}",
            author=author,
            diff=diff,
            seq=self.seq,
            body=f"{subject or f'commit {name}'}\n\nbody of {name}",
        )
        if branch:
            self.refs[f"refs/heads/{branch}"] = name
        return name

    def annotated_tag(self, name: str, ref: str, target: str, message: str = "release") -> str:
        self.seq += 1
        self.tags[name] = _Tag(target=target, tagger="Releaser", message=message, seq=self.seq)
        self.refs[ref] = name
        return name

    def _peel(self, revision: str) -> str:
        if revision in self.refs:
            revision = self.refs[revision]
        elif f"refs/tags/{revision}" in self.refs:
            revision = self.refs[f"refs/tags/{revision}"]
        if revision in self.tags:
            revision = self.tags[revision].target
        if revision not in self.commits:
            raise RevisionNotFoundError(f"unknown revision {revision}")
        return revision

    def _ancestors(self, revision: Optional[str]) -> set:
        if revision is None:
            return set()
        seen = set()
        todo = [self._peel(revision)]
        while todo:
            current = todo.pop()
            if current in seen:
                continue
            seen.add(current)
            todo.extend(self.commits[current].parents)
        return seen

    def resolve_object_type(self, revision: str) -> str:
        if revision in self.commits:
            return "commit"
        if revision in self.tags:
            return "tag"
        raise RevisionNotFoundError(f"unknown revision {revision}")

    def parent_list(self, revision: str) -> List[str]:
        return list(self.commits[self._peel(revision)].parents)

    def merge_base(self, a: str, b: str) -> Optional[str]:
        common = self._ancestors(a) & self._ancestors(b)
        if not common:
            return None
        return max(common, key=lambda name: self.commits[name].seq)

    def ancestry_difference(
        self,
        from_revision: Optional[str],
        to_revision: str,
        oldest_first: bool = False,
        excluding: Sequence[str] = (),
    ) -> List[str]:
        reachable = self._ancestors(to_revision) - self._ancestors(from_revision)
        for revision in excluding:
            reachable -= self._ancestors(revision)
        ordered = sorted(reachable, key=lambda name: self.commits[name].seq, reverse=True)
        if oldest_first:
            ordered.reverse()
        return ordered

    def all_reference_tips(self, patterns: Sequence[str]) -> Dict[str, str]:
        return {
            name: self.tags[revision].target if revision in self.tags else revision
            for name, revision in self.refs.items()
            if any(name.startswith(pattern) for pattern in patterns)
        }

    def resolve_reference(self, name: str) -> Optional[str]:
        return self.refs.get(name)

    def raw_diff(self, revision: str) -> str:
        return self.commits[self._peel(revision)].diff

    def raw_metadata(self, revision: str, fields: Sequence[str]) -> Dict[str, str]:
        commit = self.commits[self._peel(revision)]
        values = {
            "author_name": commit.author,
            "author_email": f"{commit.author.lower()}@example.com",
            "author_time": str(1700000000 + commit.seq),
            "subject": commit.subject,
            "body": commit.body,
        }
        return {name: values[name] for name in fields}

    def tag_details(self, reference: str) -> TagDetails:
        tag = self.tags[self.refs[reference]]
        return TagDetails(
            object_name=tag.target,
            object_type=tag.object_type,
            tagger=tag.tagger,
            tagger_date="Mon Jan 1 00:00:00 2024 +0000",
            message=tag.message,
        )

    def describe_previous_tag(self, revision: str) -> Optional[str]:
        parents = self.parent_list(revision)
        if not parents:
            return None
        reachable = self._ancestors(parents[0])
        candidates = [
            (self.commits[self._peel(target)].seq, name[len("refs/tags/"):])
            for name, target in self.refs.items()
            if name.startswith("refs/tags/") and self._peel(target) in reachable
        ]
        if not candidates:
            return None
        return max(candidates)[1]


@pytest.fixture
def graph() -> GraphOracle:
    return GraphOracle()
