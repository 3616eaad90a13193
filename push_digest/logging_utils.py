"""
Logging setup for the push-digest command.

The digest itself goes to stdout, which a hook may pipe into a mailer,
so log records always go to stderr. Only the ``push_digest`` loggers
are configured; whatever else runs in the process keeps its own
settings.
"""

from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "push_digest"

_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def configure_logging(verbosity: int) -> logging.Logger:
    """
    Set the package log level from a -v count and attach a stderr handler.

    0 shows warnings (skipped diffs, git failures), 1 adds per-push
    progress, 2 or more adds every git command. Calling this again only
    changes the level.
    """

    level = _LEVELS[max(0, min(verbosity, len(_LEVELS) - 1))]

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
