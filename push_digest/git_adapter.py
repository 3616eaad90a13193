"""
Git integration for push-digest.

This module answers the revision queries of RevisionOracle by running
the git CLI. It is meant to run inside a post-receive hook, after the
references have been updated, so the repository state it sees is the
one the push produced.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import OracleError, OracleUnavailableError, RevisionNotFoundError
from .oracle import RevisionOracle, TagDetails

LOG = logging.getLogger(__name__)

_FIELD_PLACEHOLDERS = {
    "author_name": "%an",
    "author_email": "%ae",
    "author_time": "%at",
    "subject": "%s",
    "body": "%B",
}

_NOT_FOUND_MARKERS = (
    "not a valid object name",
    "not a valid commit name",
    "bad revision",
    "bad object",
    "unknown revision",
    "needed a single revision",
)


def _run_git(
    args: list[str],
    cwd: Optional[str] = None,
    input_text: Optional[str] = None,
    allowed_returncodes: Tuple[int, ...] = (0,),
) -> subprocess.CompletedProcess[str]:
    """
    Run a git command and return the completed process.

    All git invocations go through here so that error handling and
    logging are centralized. Exit codes outside allowed_returncodes
    raise an OracleError subclass carrying git's stderr.
    """

    cmd = ["git", *args]
    LOG.debug("Running git command: %s", " ".join(cmd))
    try:
        completed = subprocess.run(
            cmd,
            cwd=cwd,
            check=False,
            encoding="utf-8",
            errors="replace",
            capture_output=True,
            input=input_text,
        )
    except OSError as exc:  # noqa: BLE001
        raise OracleUnavailableError(f"failed to execute git: {exc}") from exc

    if completed.returncode not in allowed_returncodes:
        stderr = (completed.stderr or "").strip()
        LOG.debug("git stderr: %s", stderr)
        message = f"git command failed: {' '.join(cmd)}"
        if stderr:
            message = f"{message}: {stderr}"
        if any(marker in stderr.lower() for marker in _NOT_FOUND_MARKERS):
            raise RevisionNotFoundError(message)
        raise OracleError(message)

    return completed


class GitOracle(RevisionOracle):
    """
    RevisionOracle backed by the git executable.
    """

    def __init__(self, repository: Optional[str] = None) -> None:
        self.repository = repository

    def _git(
        self,
        args: list[str],
        input_text: Optional[str] = None,
        allowed_returncodes: Tuple[int, ...] = (0,),
    ) -> subprocess.CompletedProcess[str]:
        return _run_git(
            args,
            cwd=self.repository,
            input_text=input_text,
            allowed_returncodes=allowed_returncodes,
        )

    def resolve_object_type(self, revision: str) -> str:
        return self._git(["cat-file", "-t", revision]).stdout.strip()

    def parent_list(self, revision: str) -> List[str]:
        output = self._git(["rev-list", "--parents", "-n", "1", revision]).stdout
        return output.split()[1:]

    def merge_base(self, a: str, b: str) -> Optional[str]:
        # Exit status 1 means the two histories share no commit.
        completed = self._git(["merge-base", a, b], allowed_returncodes=(0, 1))
        base = completed.stdout.strip()
        return base or None

    def ancestry_difference(
        self,
        from_revision: Optional[str],
        to_revision: str,
        oldest_first: bool = False,
        excluding: Sequence[str] = (),
    ) -> List[str]:
        args = ["rev-list", "--topo-order"]
        if oldest_first:
            args.append("--reverse")
        args.append("--stdin")

        # The exclusion list can hold every branch tip of a large
        # repository, so it is fed through stdin rather than argv.
        revisions = [to_revision]
        if from_revision:
            revisions.append(f"^{from_revision}")
        revisions.extend(f"^{revision}" for revision in excluding)

        output = self._git(args, input_text="\n".join(revisions) + "\n").stdout
        return output.split()

    def all_reference_tips(self, patterns: Sequence[str]) -> Dict[str, str]:
        # The starred fields are only set for annotated tags.
        output = self._git(
            [
                "for-each-ref",
                "--format=%(objectname) %(objecttype) %(*objectname) %(*objecttype) %(refname)",
                *patterns,
            ]
        ).stdout
        tips: Dict[str, str] = {}
        for line in output.splitlines():
            revision, object_type, peeled, peeled_type, name = line.split(" ", 4)
            if peeled:
                revision, object_type = peeled, peeled_type
            if object_type == "commit":
                tips[name] = revision
        return tips

    def resolve_reference(self, name: str) -> Optional[str]:
        completed = self._git(
            ["rev-parse", "--verify", "--quiet", name],
            allowed_returncodes=(0, 1),
        )
        return completed.stdout.strip() or None

    def raw_diff(self, revision: str) -> str:
        return self._git(
            [
                "log",
                "-n",
                "1",
                "-C",
                "-p",
                "--pretty=format:",
                "--no-color",
                "--no-ext-diff",
                "--src-prefix=a/",
                "--dst-prefix=b/",
                revision,
            ]
        ).stdout

    def raw_metadata(self, revision: str, fields: Sequence[str]) -> Dict[str, str]:
        try:
            placeholders = [_FIELD_PLACEHOLDERS[name] for name in fields]
        except KeyError as exc:
            raise ValueError(f"unknown commit field: {exc.args[0]}") from exc

        output = self._git(
            ["log", "-n", "1", f"--pretty=format:{'%x00'.join(placeholders)}", revision]
        ).stdout
        values = output.split("\x00")
        if len(values) != len(fields):
            raise OracleError(
                f"unexpected metadata for {revision}: "
                f"expected {len(fields)} fields, got {len(values)}"
            )
        return {name: value.strip() for name, value in zip(fields, values)}

    def tag_details(self, reference: str) -> TagDetails:
        output = self._git(
            [
                "for-each-ref",
                "--format=%(*objectname)%00%(*objecttype)%00%(taggername)"
                "%00%(taggerdate)%00%(contents)",
                reference,
            ]
        ).stdout
        if not output.strip():
            raise RevisionNotFoundError(f"no annotated tag at {reference}")

        object_name, object_type, tagger, tagger_date, message = output.split("\x00", 4)
        object_size = None
        if object_type != "commit":
            size = self._git(["cat-file", "-s", object_name]).stdout.strip()
            object_size = int(size)

        return TagDetails(
            object_name=object_name,
            object_type=object_type,
            tagger=tagger,
            tagger_date=tagger_date,
            message=message.rstrip("\n"),
            object_size=object_size,
        )

    def describe_previous_tag(self, revision: str) -> Optional[str]:
        # git describe exits with 128 when nothing is found, including
        # when revision has no parent.
        completed = self._git(
            ["describe", "--abbrev=0", f"{revision}^"],
            allowed_returncodes=(0, 128),
        )
        if completed.returncode != 0:
            return None
        return completed.stdout.strip() or None
