"""
High-level processing of a single reference change.

The engine is responsible for:
  - classifying the change,
  - working out which commits the push introduced,
  - loading and diff-parsing each of those commits,
  - expanding merges with the commits they brought in, and
  - producing the push summary text.

A change either yields a complete PushResult or raises; nothing is
returned half-built.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Tuple

from .classifier import classify
from .config import Config
from .diff_parser import parse_commit_diff
from .domain import ChangeKind, CommitRecord, PushResult, ReferenceChange
from .merges import traverse_merges
from .oracle import COMMIT_FIELDS, RevisionOracle
from .reconstructor import Reconstruction, excluded_tips, reconstruct, reconstruct_created
from .summary import shortlog

LOG = logging.getLogger(__name__)

_REFERENCE_TITLES = {
    "branch": "Branch",
    "annotated tag": "Annotated tag",
    "tag": "Unannotated tag",
}

_CHANGE_VERBS = {
    "create": "created",
    "update": "updated",
    "delete": "deleted",
}


def load_commit(
    oracle: RevisionOracle,
    revision: str,
    skip_malformed_diffs: bool = False,
) -> CommitRecord:
    """
    Build a CommitRecord from the oracle's metadata and diff for revision.
    """

    metadata = oracle.raw_metadata(revision, COMMIT_FIELDS)
    author_time = metadata.get("author_time") or ""
    date = (
        datetime.fromtimestamp(int(author_time), tz=timezone.utc)
        if author_time.isdigit()
        else None
    )

    files = parse_commit_diff(
        oracle.raw_diff(revision),
        revision,
        skip_malformed=skip_malformed_diffs,
    )

    return CommitRecord(
        revision=revision,
        parents=oracle.parent_list(revision),
        author=metadata.get("author_name", ""),
        author_email=metadata.get("author_email", ""),
        date=date,
        subject=metadata.get("subject", ""),
        summary=metadata.get("body", ""),
        files=files,
    )


class PushProcessor:
    """
    Processes one reference change against one oracle.

    A processor holds no state between calls; every push gets its own
    commit list and merge traversal.
    """

    def __init__(self, oracle: RevisionOracle, config: Optional[Config] = None) -> None:
        self.oracle = oracle
        self.config = config or Config()

    def _load(self, revision: str) -> CommitRecord:
        return load_commit(self.oracle, revision, self.config.skip_malformed_diffs)

    def _subject(self, revision: str) -> str:
        return self.oracle.raw_metadata(revision, ["subject"])["subject"]

    def process(self, change: ReferenceChange) -> Optional[PushResult]:
        """
        Return the PushResult for change, or None when the change must
        not be announced (remote-tracking branches).
        """

        change_kind, reference_kind = classify(change, self.oracle)
        if reference_kind == "tracking branch":
            LOG.info("Not announcing update of tracking branch %s", change.name)
            return None

        title = (
            f"{_REFERENCE_TITLES[reference_kind]} ({change.name}) "
            f"is {_CHANGE_VERBS[change_kind]}.\n"
        )

        commits: List[CommitRecord] = []
        is_fast_forward = False
        if reference_kind == "branch" and change_kind == "create":
            summary, commits = self._create_branch(change, title)
        elif reference_kind == "branch" and change_kind == "update":
            summary, commits, is_fast_forward = self._update_branch(change, title)
        elif change_kind == "delete":
            summary = self._deleted(change, title)
        elif reference_kind == "annotated tag":
            summary = self._annotated_tag(change, change_kind, title)
        else:
            summary = self._unannotated_tag(change, change_kind, title)

        LOG.info("%s: %d commits to announce", change.name, len(commits))
        return PushResult(
            reference=change.name,
            reference_kind=reference_kind,
            change_kind=change_kind,
            old_revision=change.old,
            new_revision=change.new,
            summary_text=summary,
            commits=commits,
            is_fast_forward=is_fast_forward,
        )

    def _expand(self, revisions: Iterable[str], old_revision: str) -> List[CommitRecord]:
        commits = [self._load(revision) for revision in revisions]
        return traverse_merges(commits, old_revision, self.oracle, self._load)

    def _create_branch(
        self, change: ReferenceChange, title: str
    ) -> Tuple[str, List[CommitRecord]]:
        excluded = excluded_tips(self.oracle, change.name)
        result = reconstruct_created(self.oracle, change.new, excluded)
        commits = self._expand(result.new_commits, change.old)
        return title + "".join(result.summary_lines), commits

    def _update_branch(
        self, change: ReferenceChange, title: str
    ) -> Tuple[str, List[CommitRecord], bool]:
        excluded = excluded_tips(self.oracle, change.name)
        result = reconstruct(self.oracle, change.old, change.new, excluded)
        commits = self._expand(result.new_commits, change.old)
        return self._update_summary(title, result, bool(commits)), commits, result.is_fast_forward

    @staticmethod
    def _update_summary(title: str, result: Reconstruction, has_commits: bool) -> str:
        summary = title + result.explanation + "\n" + "".join(result.summary_lines)
        if result.is_rewind_only or not has_commits:
            summary += "\n"
        return summary

    def _deleted(self, change: ReferenceChange, title: str) -> str:
        return (
            f"{title}"
            f"       was  {change.old}\n"
            "\n"
            f"{change.old} {self._subject(change.old)}\n"
        )

    def _unannotated_tag(self, change: ReferenceChange, change_kind: ChangeKind, title: str) -> str:
        summary = title + f"        at  {change.new} (commit)\n"
        if change_kind == "update":
            summary += f"      from  {change.old} (which is now obsolete)\n"
        return summary + f"\n{change.new} {self._subject(change.new)}\n"

    def _annotated_tag(self, change: ReferenceChange, change_kind: ChangeKind, title: str) -> str:
        summary = title + f"        at  {change.new} (tag)\n"
        if change_kind == "update":
            summary += f"      from  {change.old} (which is now obsolete)\n"

        details = self.oracle.tag_details(change.name)
        summary += f"   tagging  {details.object_name} ({details.object_type})\n"

        previous_tag = None
        if details.object_type == "commit":
            # A tagged commit is taken to be a release; find the release
            # it replaces.
            previous_tag = self.oracle.describe_previous_tag(details.object_name)
            if previous_tag:
                summary += f"  replaces  {previous_tag}\n"
        elif details.object_size is not None:
            summary += f"    length  {details.object_size} bytes\n"

        summary += f" tagged by  {details.tagger}\n"
        summary += f"        on  {details.tagger_date}\n\n"
        summary += details.message + "\n"

        if details.object_type == "commit":
            revisions = self.oracle.ancestry_difference(
                previous_tag,
                details.object_name,
                oldest_first=True,
            )
            entries = []
            for revision in revisions:
                metadata = self.oracle.raw_metadata(revision, ["author_name", "subject"])
                entries.append((metadata["author_name"], metadata["subject"]))
            if entries:
                summary += "\n" + shortlog(entries)
        return summary


def process_reference_change(
    change: ReferenceChange,
    oracle: RevisionOracle,
    config: Optional[Config] = None,
) -> Optional[PushResult]:
    """
    Process one reference change; see PushProcessor.process().
    """

    return PushProcessor(oracle, config).process(change)


def process_hook_input(
    lines: Iterable[str],
    oracle: RevisionOracle,
    config: Optional[Config] = None,
) -> Iterator[PushResult]:
    """
    Process post-receive input line by line, skipping suppressed changes.

    Changes are handled strictly one after the other; the first failure
    propagates before anything further is produced.
    """

    processor = PushProcessor(oracle, config)
    for line in lines:
        if not line.strip():
            continue
        result = processor.process(ReferenceChange.from_hook_line(line))
        if result is not None:
            yield result
