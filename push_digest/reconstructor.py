"""
Reconstruction of the commits a branch push introduced.

A branch update is not necessarily a fast-forward: it may have been
forced, discarding revisions (a rewind) and possibly adding new ones on
top of an older base. Every revision already reachable from some other
branch or tag is assumed to have been announced when that reference was
pushed, so it is left out of the new commit list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .oracle import RevisionOracle
from .summary import (
    explain_rewind,
    explain_rewind_and_new_commits,
    revision_line,
)

LOG = logging.getLogger(__name__)

EXCLUSION_NAMESPACES = ("refs/heads/", "refs/tags/")


@dataclass
class Reconstruction:
    """
    The outcome of analysing one branch push.

    discarded is newest first, forward and new_commits oldest first.
    summary_lines is the table of contents of the push summary.
    """

    is_fast_forward: bool
    is_rewind_only: bool = False
    discarded: List[str] = field(default_factory=list)
    forward: List[str] = field(default_factory=list)
    new_commits: List[str] = field(default_factory=list)
    summary_lines: List[str] = field(default_factory=list)
    explanation: str = ""


def excluded_tips(oracle: RevisionOracle, reference: str) -> List[str]:
    """
    Return the branch and tag tips whose history counts as already
    announced.

    The reference being pushed is left out by its current value rather
    than its name, so any other reference that happens to point at the
    same revision is left out as well.
    """

    current = oracle.resolve_reference(reference)
    tips = oracle.all_reference_tips(EXCLUSION_NAMESPACES)

    excluded: List[str] = []
    for name in sorted(tips):
        revision = tips[name]
        if revision != current and revision not in excluded:
            excluded.append(revision)

    LOG.debug("Excluding %d reference tips for %s", len(excluded), reference)
    return excluded


def _subject(oracle: RevisionOracle, revision: str) -> str:
    return oracle.raw_metadata(revision, ["subject"])["subject"]


def reconstruct(
    oracle: RevisionOracle,
    old_revision: str,
    new_revision: str,
    excluded: Sequence[str] = (),
) -> Reconstruction:
    """
    Work out what updating a branch from old_revision to new_revision did.
    """

    summary_lines: List[str] = []

    discarded = oracle.ancestry_difference(new_revision, old_revision)
    for revision in discarded:
        summary_lines.append(revision_line("discards", revision, _subject(oracle, revision)))

    is_fast_forward = not discarded
    if is_fast_forward:
        summary_lines.append(revision_line("from", old_revision, _subject(oracle, old_revision)))

    # Listed whether or not the push was a fast-forward.
    forward = oracle.ancestry_difference(old_revision, new_revision, oldest_first=True)
    for revision in forward:
        summary_lines.append(revision_line("via", revision, _subject(oracle, revision)))

    is_rewind_only = False
    explanation = ""
    if not is_fast_forward:
        base: Optional[str] = oracle.merge_base(old_revision, new_revision)
        if base == new_revision:
            LOG.info("Update %s..%s is a rewind", old_revision[:7], new_revision[:7])
            is_rewind_only = True
            explanation = explain_rewind(old_revision, new_revision)
        else:
            LOG.info(
                "Update %s..%s discards %d revisions and adds new ones",
                old_revision[:7],
                new_revision[:7],
                len(discarded),
            )
            explanation = explain_rewind_and_new_commits(old_revision, new_revision)

    new_commits: List[str] = []
    if not is_rewind_only:
        new_commits = oracle.ancestry_difference(
            old_revision,
            new_revision,
            oldest_first=True,
            excluding=excluded,
        )

    return Reconstruction(
        is_fast_forward=is_fast_forward,
        is_rewind_only=is_rewind_only,
        discarded=discarded,
        forward=forward,
        new_commits=new_commits,
        summary_lines=summary_lines,
        explanation=explanation,
    )


def reconstruct_created(
    oracle: RevisionOracle,
    new_revision: str,
    excluded: Sequence[str] = (),
) -> Reconstruction:
    """
    List the commits a newly created branch brings in, oldest first.

    The newest one is marked as the point the branch was created at.
    """

    new_commits = oracle.ancestry_difference(
        None,
        new_revision,
        oldest_first=True,
        excluding=excluded,
    )

    summary_lines: List[str] = []
    for index, revision in enumerate(new_commits):
        verb = "at" if index == len(new_commits) - 1 else "via"
        summary_lines.append(revision_line(verb, revision, _subject(oracle, revision)))

    return Reconstruction(
        is_fast_forward=False,
        forward=list(new_commits),
        new_commits=new_commits,
        summary_lines=summary_lines,
    )
