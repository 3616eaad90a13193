"""
Custom exception types used across push-digest.

Defining explicit error classes makes it easier for the CLI and higher
layers to distinguish between malformed input, repository failures and
unexpected bugs. A suppressed notification (an update to a
remote-tracking branch) is not an error and has no exception here.
"""

from __future__ import annotations


class PushDigestError(Exception):
    """Base class for all push-digest specific errors."""


class InvalidRevisionError(PushDigestError):
    """Raised when both ends of a reference change are the zero revision."""


class UnexpectedReferenceKindError(PushDigestError):
    """
    Raised when a reference namespace and object type do not form a
    known combination.
    """

    def __init__(self, reference: str, object_type: str) -> None:
        super().__init__(
            f"unknown type of update to {reference} ({object_type})"
        )
        self.reference = reference
        self.object_type = object_type


class DiffParseError(PushDigestError):
    """Raised when parsing a diff fails."""


class UnrecognizedDiffHeaderError(DiffParseError):
    """Raised for an extended header line the parser does not know."""


class MalformedHunkError(DiffParseError):
    """Raised when a hunk header cannot be parsed."""


class OracleError(PushDigestError):
    """Raised when a revision query against the repository fails."""


class RevisionNotFoundError(OracleError):
    """Raised when a revision or reference does not exist."""


class OracleUnavailableError(OracleError):
    """Raised when the repository backend cannot be reached at all."""
