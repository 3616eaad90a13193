"""
Fixed text used in push summaries.

Revision lines use a right-aligned verb column so that a summary reads
as a small table:

    discards  1234567 Old subject
        from  89abcde Base subject
         via  fedcba9 New subject
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Dict, List, Sequence, Tuple

from .domain import short_revision

_REVISION_LINE_FORMATS = {
    "discards": "discards  {revision} {subject}\n",
    "from": "    from  {revision} {subject}\n",
    "via": "     via  {revision} {subject}\n",
    "at": "     at   {revision} {subject}\n",
}


def revision_line(verb: str, revision: str, subject: str) -> str:
    return _REVISION_LINE_FORMATS[verb].format(
        revision=short_revision(revision),
        subject=subject,
    )


def explain_rewind(old_revision: str, new_revision: str) -> str:
    return (
        "This update discarded existing revisions and left the branch pointing at\n"
        "a previous point in the repository history.\n"
        "\n"
        f" * -- * -- N ({short_revision(new_revision)})\n"
        "            \\\n"
        f"             O <- O <- O ({short_revision(old_revision)})\n"
        "\n"
        "The removed revisions are not necessarily gone - if another reference\n"
        "still refers to them they will stay in the repository.\n"
    )


def explain_rewind_and_new_commits(old_revision: str, new_revision: str) -> str:
    return (
        "This update added new revisions after undoing existing revisions.  That is\n"
        "to say, the old revision is not a strict subset of the new revision.  This\n"
        "situation occurs when you --force push a change and generate a repository\n"
        "containing something like this:\n"
        "\n"
        f" * -- * -- B <- O <- O <- O ({short_revision(old_revision)})\n"
        "            \\\n"
        f"             N -> N -> N ({short_revision(new_revision)})\n"
        "\n"
        "When this happens we assume that you've already had alert emails for all\n"
        "of the O revisions, and so we here report only the revisions in the N\n"
        "branch from the common base, B.\n"
    )


def shortlog(entries: Sequence[Tuple[str, str]]) -> str:
    """
    Group (author, subject) pairs the way ``git shortlog`` does.

    Authors are sorted by name; subjects keep the order they were given
    in.
    """

    by_author: Dict[str, List[str]] = OrderedDict()
    for author, subject in entries:
        by_author.setdefault(author, []).append(subject)

    output: List[str] = []
    for author in sorted(by_author):
        subjects = by_author[author]
        output.append(f"{author} ({len(subjects)}):\n")
        for subject in subjects:
            output.append(f"      {subject}\n")
        output.append("\n")
    return "".join(output)
