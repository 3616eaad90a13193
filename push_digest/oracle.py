"""
Abstract interface for revision queries in push-digest.

The push processing code never looks at repository storage directly.
Everything it needs to know about ancestry, merge bases, object types
and diffs is asked through this interface, so the core can run against
the git command line or against an in-memory graph.

Implementations raise RevisionNotFoundError, OracleUnavailableError or
another OracleError subclass; callers let those propagate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

COMMIT_FIELDS = ("author_name", "author_email", "author_time", "subject", "body")


@dataclass
class TagDetails:
    """
    What an annotated tag object says about itself.
    """

    object_name: str
    object_type: str
    tagger: str
    tagger_date: str
    message: str
    object_size: Optional[int] = None


class RevisionOracle(ABC):
    """
    Answers graph and metadata questions about revisions.
    """

    @abstractmethod
    def resolve_object_type(self, revision: str) -> str:
        """
        Return the object type of revision: commit, tag, tree or blob.
        """

    @abstractmethod
    def parent_list(self, revision: str) -> List[str]:
        """
        Return the parents of a commit, first parent first.
        """

    @abstractmethod
    def merge_base(self, a: str, b: str) -> Optional[str]:
        """
        Return the best common ancestor of a and b, or None when the
        histories are unrelated.
        """

    @abstractmethod
    def ancestry_difference(
        self,
        from_revision: Optional[str],
        to_revision: str,
        oldest_first: bool = False,
        excluding: Sequence[str] = (),
    ) -> List[str]:
        """
        Return revisions reachable from to_revision but not from
        from_revision nor from any revision in excluding.

        from_revision may be None to list the whole ancestry. The
        default order is newest first; children always precede their
        parents.
        """

    @abstractmethod
    def all_reference_tips(self, patterns: Sequence[str]) -> Dict[str, str]:
        """
        Return a mapping of reference name to commit for every reference
        under one of the given prefixes (e.g. ``refs/heads/``).

        Annotated tags are peeled: they map to the commit they tag, not
        to the tag object. References that do not end at a commit are
        left out.
        """

    @abstractmethod
    def resolve_reference(self, name: str) -> Optional[str]:
        """
        Return the current revision of a reference, or None if it does
        not exist.
        """

    @abstractmethod
    def raw_diff(self, revision: str) -> str:
        """
        Return the unified diff of a commit against its first parent
        (against the empty tree for a root commit).
        """

    @abstractmethod
    def raw_metadata(self, revision: str, fields: Sequence[str]) -> Dict[str, str]:
        """
        Return the requested commit fields as text.

        Known fields are those listed in COMMIT_FIELDS; author_time is
        a Unix timestamp.
        """

    @abstractmethod
    def tag_details(self, reference: str) -> TagDetails:
        """
        Describe the annotated tag currently stored at reference.
        """

    @abstractmethod
    def describe_previous_tag(self, revision: str) -> Optional[str]:
        """
        Return the name of the nearest tag reachable from the parent of
        revision, or None if there is none.
        """
