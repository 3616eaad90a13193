"""
Command-line interface for push-digest.

This module is responsible for argument parsing and delegating to the
push processing engine. Without positional arguments it reads
post-receive hook input from stdin, so it can be installed directly as
``hooks/post-receive``.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional, TextIO

from .config import Config
from .domain import PushResult
from .engine import process_hook_input
from .errors import PushDigestError
from .git_adapter import GitOracle
from .logging_utils import configure_logging


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="push-digest",
        description=(
            "Describe what a push did to a git reference: a push summary "
            "plus every commit it introduced, including those brought in "
            "by merges."
        ),
    )

    parser.add_argument(
        "change",
        nargs="*",
        metavar="OLD NEW REF",
        help=(
            "A single reference change. When omitted, post-receive lines "
            "are read from stdin."
        ),
    )
    parser.add_argument(
        "-C",
        "--repository",
        help="Run as if git was started in this directory.",
    )
    parser.add_argument(
        "--skip-malformed-diffs",
        action="store_true",
        help="Leave out file diffs that cannot be parsed instead of failing.",
    )
    parser.add_argument(
        "--stat",
        dest="show_stat",
        action="store_true",
        help="List the files each commit touched.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be specified multiple times).",
    )

    return parser


def write_result(result: PushResult, out: TextIO, show_stat: bool = False) -> None:
    """
    Print a plain-text dump of a push result.
    """

    out.write(
        f"== {result.reference} ({result.reference_kind} {result.change_kind}d)\n"
    )
    out.write(result.summary_text)
    if not result.summary_text.endswith("\n"):
        out.write("\n")

    for commit in result.commits:
        out.write(f"{commit.short_revision} {commit.subject}\n")
        for status in commit.merge_status:
            out.write(f"    {status}\n")
        if show_stat:
            for file in commit.files:
                out.write(
                    f"    {file.status}: {file.path} "
                    f"(+{file.added_lines} -{file.deleted_lines})\n"
                )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.change and len(args.change) != 3:
        parser.error("expected exactly OLD NEW REF")

    config = Config(
        repository=args.repository,
        skip_malformed_diffs=args.skip_malformed_diffs,
        show_stat=args.show_stat,
        verbosity=args.verbose,
    )

    configure_logging(verbosity=config.verbosity)

    if args.change:
        lines = [" ".join(args.change)]
    else:
        lines = sys.stdin.readlines()

    oracle = GitOracle(config.repository)
    try:
        for result in process_hook_input(lines, oracle, config):
            write_result(result, sys.stdout, show_stat=config.show_stat)
    except KeyboardInterrupt:
        # Graceful shutdown on Ctrl+C
        return 130
    except (PushDigestError, ValueError) as exc:
        print(f"push-digest: error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
