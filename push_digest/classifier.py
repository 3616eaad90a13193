"""
Classification of reference changes.

A post-receive line only says which revisions a reference moved
between. Combining that with the reference namespace and the type of
object the reference points at tells us what kind of notification, if
any, the change deserves.
"""

from __future__ import annotations

import logging
from typing import Tuple

from .domain import ChangeKind, ReferenceChange, ReferenceKind, is_zero_revision
from .errors import InvalidRevisionError, UnexpectedReferenceKindError
from .oracle import RevisionOracle

LOG = logging.getLogger(__name__)

TAGS_NAMESPACE = "refs/tags/"
BRANCHES_NAMESPACE = "refs/heads/"
REMOTES_NAMESPACE = "refs/remotes/"


def detect_change_kind(change: ReferenceChange) -> ChangeKind:
    """
    Derive create/update/delete from which side is the zero revision.
    """

    old_is_zero = is_zero_revision(change.old)
    new_is_zero = is_zero_revision(change.new)

    if old_is_zero and new_is_zero:
        raise InvalidRevisionError(
            f"both revisions of {change.name} are the zero revision"
        )
    if old_is_zero:
        return "create"
    if new_is_zero:
        return "delete"
    return "update"


def detect_reference_kind(reference: str, object_type: str) -> ReferenceKind:
    """
    Map a reference name and the type of the object it points at to a
    ReferenceKind.

    Updates of remote-tracking branches come back as "tracking branch";
    callers are expected to stay silent about those.
    """

    if reference.startswith(TAGS_NAMESPACE):
        if object_type == "tag":
            return "annotated tag"
        if object_type == "commit":
            return "tag"
    elif reference.startswith(BRANCHES_NAMESPACE):
        if object_type == "commit":
            return "branch"
    elif reference.startswith(REMOTES_NAMESPACE):
        if object_type == "commit":
            return "tracking branch"

    raise UnexpectedReferenceKindError(reference, object_type)


def classify(change: ReferenceChange, oracle: RevisionOracle) -> Tuple[ChangeKind, ReferenceKind]:
    """
    Return the (change kind, reference kind) pair for a reference change.

    The object type is looked up on the new revision, or on the old one
    when the reference was deleted.
    """

    change_kind = detect_change_kind(change)
    revision = change.old if change_kind == "delete" else change.new
    object_type = oracle.resolve_object_type(revision)
    reference_kind = detect_reference_kind(change.name, object_type)

    LOG.info("%s: %s %s (%s)", change.name, reference_kind, change_kind, object_type)
    return change_kind, reference_kind
